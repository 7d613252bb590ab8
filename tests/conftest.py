import importlib
import shutil
import sys
from pathlib import Path

import pytest

from buildergen.config import GeneratorConfig
from buildergen.driver import generate, write_files
from buildergen.reflect import load_universe, read_modules

TESTDATA = Path(__file__).parent / "testdata"

_GENERATED_MODULES = ("sample_models", "sample_models_builder")


def _forget_modules() -> None:
    for name in _GENERATED_MODULES:
        sys.modules.pop(name, None)


@pytest.fixture()
def sample_dir(tmp_path: Path) -> Path:
    shutil.copy(TESTDATA / "sample_models.py", tmp_path / "sample_models.py")
    return tmp_path


@pytest.fixture()
def sample_universe(sample_dir: Path):
    return load_universe(read_modules([sample_dir / "sample_models.py"], source_root=sample_dir))


@pytest.fixture()
def sample_config(sample_dir: Path) -> GeneratorConfig:
    return GeneratorConfig(source_root=sample_dir)


@pytest.fixture()
def builders(sample_dir: Path, sample_config: GeneratorConfig, monkeypatch: pytest.MonkeyPatch):
    """Generate builders for the sample models into tmp_path and import them."""
    files = generate([sample_dir / "sample_models.py"], config=sample_config)
    write_files(files)

    monkeypatch.syspath_prepend(str(sample_dir))
    _forget_modules()
    try:
        yield importlib.import_module("sample_models_builder")
    finally:
        _forget_modules()
