import pytest

from buildergen.directives import DirectiveResolver, Directives
from buildergen.driver import plan_package
from buildergen.emitter import Action, BuilderEmitter
from buildergen.naming import ImportTracker
from buildergen.policy import PackageBoundary
from buildergen.reflect import load_sources
from buildergen.typegraph import Kind, Name, Type, TypeGraphError


def _specs(universe, module: str, table: dict[str, Directives] | None = None):
    specs, imports = plan_package(universe, universe.packages[module], directives=DirectiveResolver(table=table))
    return {s.type_name: s for s in specs}, imports


def test_sample_action_table(sample_universe) -> None:
    specs, _ = _specs(sample_universe, "sample_models")
    test = specs["Test"]
    actions = {f.member: f.action for f in test.fields}
    assert actions == {
        "key": Action.SETTER,
        "tas": Action.SETTER,
        "test_pkg_type": Action.SETTER,
        "test_a": Action.NESTED,
        "test_b": Action.NESTED,
        "test_b_list": Action.ADD_SEQUENCE,
        "test_b_map": Action.ADD_MAPPING,
        "test_b_list_pointer": Action.ADD_SEQUENCE,
        "test_b_alias": Action.ADD_SEQUENCE,
        "test_b_alias_map": Action.ADD_MAPPING,
        "test_json_alias": Action.SETTER,
        "tags": Action.SETTER,
        "labels": Action.SETTER,
        "ratios": Action.SETTER,
        "color": Action.SETTER,
        "origin": Action.SETTER,
        "ignored": Action.SETTER,
        "shape": Action.SKIP,
        "on_change": Action.SKIP,
    }
    assert test.diagnostics == (
        "type unsupported sample_models.Test shape",
        "type unsupported sample_models.Test on_change",
    )


def test_sample_plan_details(sample_universe) -> None:
    specs, _ = _specs(sample_universe, "sample_models")
    test = specs["Test"]

    test_a = test.plan_for("test_a")
    assert (test_a.state, test_a.initial_state, test_a.eager) == ("_test_a_builder", "TestABuilder()", True)
    assert test_a.zero == "_zero_test_a()"

    test_b = test.plan_for("test_b")
    assert (test_b.state_annotation, test_b.initial_state, test_b.eager) == ("TestBBuilder | None", "None", False)
    assert test_b.zero == "None"

    b_map = test.plan_for("test_b_map")
    assert b_map.method == "add_test_b_map"
    assert b_map.state == "_test_b_map_builders"
    assert b_map.key_annotation == "str"
    assert b_map.state_annotation == "dict[str, TestBBuilder]"

    assert test.plan_for("test_pkg_type").annotation == "Decimal | None"
    assert test.plan_for("test_json_alias").annotation == "TestJsonAlias"
    assert test.plan_for("test_json_alias").zero == 'b""'
    assert test.plan_for("ratios").annotation == "dict[str, Fraction]"
    assert test.plan_for("origin").zero == "None"

    with pytest.raises(KeyError):
        test.plan_for("missing")


def test_new_calls_and_embedded(sample_universe) -> None:
    specs, _ = _specs(sample_universe, "sample_models")
    assert specs["TestA"].new_calls == ("test1_tag", "test2_tag")
    assert specs["TestB"].new_calls == ("test_tag",)

    test_e = specs["TestE"]
    assert test_e.plan_for("test_d").action is Action.EMBEDDED
    assert test_e.plan_for("test_d").method == "test_d"
    assert [f.member for f in test_e.promoted] == ["test_d"]

    test_f = specs["TestF"].plan_for("test_e")
    assert test_f.action is Action.EMBEDDED
    assert test_f.method is None
    assert test_f.state == "_test_e_builder"


def test_sample_imports(sample_universe) -> None:
    _, imports = _specs(sample_universe, "sample_models")
    assert imports.type_only_lines() == ["from decimal import Decimal", "from fractions import Fraction"]
    assert imports.typing_names() == ["Any", "TYPE_CHECKING"]
    [local] = imports.runtime_lines()
    assert local.startswith("from sample_models import ")
    assert "TestC" in local
    assert "TestJsonAlias" in local


def test_table_new_call_extends_comment_hooks(sample_universe) -> None:
    specs, _ = _specs(sample_universe, "sample_models", {"TestB": Directives(new_call=("other",))})
    assert specs["TestB"].new_calls == ("test_tag", "other")


_FOREIGN = {
    "billing": (
        "from dataclasses import dataclass\n"
        "@dataclass\n"
        "class Invoice:\n"
        "    total: int\n"
    ),
    "shop": (
        "from dataclasses import dataclass\n"
        "from typing import Optional\n"
        "from billing import Invoice\n"
        "from buildergen.markers import Embedded\n"
        "@dataclass\n"
        "class Order:\n"
        "    invoice: Invoice\n"
        "    invoices: list[Invoice]\n"
        "    by_id: dict[str, Invoice]\n"
        "    base: Embedded[Optional[Invoice]]\n"
    ),
}


def test_foreign_records_get_setters() -> None:
    universe = load_sources(_FOREIGN)
    specs, imports = _specs(universe, "shop")
    order = specs["Order"]
    assert {f.member: f.action for f in order.fields} == {
        "invoice": Action.SETTER,
        "invoices": Action.SETTER,
        "by_id": Action.SETTER,
        "base": Action.SETTER,
    }
    assert order.plan_for("invoice").zero == "None"
    assert order.plan_for("invoices").annotation == "list[Invoice]"
    assert order.plan_for("base").annotation == "Invoice | None"
    assert not order.promoted
    assert imports.type_only_lines() == ["from billing import Invoice"]
    assert "Any" not in imports.typing_names()


def test_non_primitive_map_keys_get_setters() -> None:
    universe = load_sources(
        {
            "m": (
                "from dataclasses import dataclass\n"
                "@dataclass\n"
                "class Key:\n"
                "    id: int\n"
                "@dataclass\n"
                "class Value:\n"
                "    id: int\n"
                "@dataclass\n"
                "class Index:\n"
                "    entries: dict[Key, Value]\n"
                "    by_number: dict[int, Value]\n"
            )
        }
    )
    specs, _ = _specs(universe, "m")
    index = specs["Index"]
    assert index.plan_for("entries").action is Action.SETTER
    assert index.plan_for("by_number").action is Action.ADD_MAPPING
    assert index.plan_for("by_number").key_annotation == "int"


def test_colliding_method_names_are_suppressed() -> None:
    universe = load_sources(
        {
            "m": (
                "from dataclasses import dataclass\n"
                "@dataclass\n"
                "class Item:\n"
                "    id: int\n"
                "@dataclass\n"
                "class Cart:\n"
                "    build: str\n"
                "    items: list[Item]\n"
                "    add_items: int\n"
            )
        }
    )
    specs, _ = _specs(universe, "m")
    cart = specs["Cart"]
    assert cart.plan_for("build").action is Action.SKIP
    assert cart.plan_for("items").method == "add_items"
    assert cart.plan_for("add_items").action is Action.SKIP
    assert [f.method for f in cart.methods] == ["add_items"]
    assert len(cart.diagnostics) == 2


def test_alias_builders_build_the_target_record() -> None:
    universe = load_sources(
        {
            "m": (
                "from dataclasses import dataclass\n"
                "from typing import TypeAlias\n"
                "@dataclass\n"
                "class Order:\n"
                "    id: int\n"
                "Purchase: TypeAlias = Order\n"
            )
        }
    )
    specs, _ = _specs(universe, "m")
    purchase = specs["Purchase"]
    assert purchase.name == "PurchaseBuilder"
    assert purchase.model == "Order"
    assert purchase.zero_func == "_zero_purchase"


def test_emitter_rejects_non_records() -> None:
    boundary = PackageBoundary("m")
    emitter = BuilderEmitter(
        boundary=boundary,
        buildable=lambda t: True,
        directives=DirectiveResolver().for_type,
        imports=ImportTracker(boundary),
    )
    with pytest.raises(TypeGraphError):
        emitter.spec_for(Type(kind=Kind.OPAQUE, name=Name("m", "Thing")))


def test_methods_shadowed_by_builder_state_are_suppressed() -> None:
    universe = load_sources(
        {
            "m": (
                "from dataclasses import dataclass\n"
                "@dataclass\n"
                "class Item:\n"
                "    id: int\n"
                "@dataclass\n"
                "class Basket:\n"
                "    items: list[Item]\n"
                "    _items_builders: int\n"
                "    _model: str\n"
                "    note: str\n"
            )
        }
    )
    specs, _ = _specs(universe, "m")
    basket = specs["Basket"]
    assert basket.plan_for("_items_builders").action is Action.SKIP
    assert basket.plan_for("_model").action is Action.SKIP
    assert [f.method for f in basket.methods] == ["add_items", "note"]
    assert len(basket.diagnostics) == 2


def test_optional_containers_start_without_state(sample_universe) -> None:
    specs, _ = _specs(sample_universe, "sample_models")
    holder = specs["Holder"]

    items = holder.plan_for("maybe_items")
    assert items.action is Action.ADD_SEQUENCE
    assert (items.state_annotation, items.initial_state, items.zero) == ("list[TestGBuilder] | None", "None", "None")

    by_key = holder.plan_for("maybe_map")
    assert by_key.action is Action.ADD_MAPPING
    assert (by_key.state_annotation, by_key.initial_state) == ("dict[str, TestGBuilder] | None", "None")

    assert holder.plan_for("codes").zero == "set()"
    assert holder.plan_for("pair").zero == "()"
