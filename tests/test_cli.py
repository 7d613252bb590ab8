from pathlib import Path

import pytest

from buildergen.cli import CLIError, main


def test_generate_writes_builder_module(sample_dir: Path) -> None:
    rc = main(["generate", str(sample_dir), "--source-root", str(sample_dir)])
    assert rc == 0

    generated = sample_dir / "sample_models_builder.py"
    text = generated.read_text(encoding="utf-8")
    assert "from sample_models import " in text
    assert "class TestBuilder:" in text
    assert "class PointBuilder" not in text


def test_rerun_skips_generated_output(sample_dir: Path) -> None:
    assert main(["generate", str(sample_dir), "--source-root", str(sample_dir)]) == 0
    assert main(["generate", str(sample_dir), "--source-root", str(sample_dir)]) == 0
    assert not (sample_dir / "sample_models_builder_builder.py").exists()


def test_dry_run_lists_files(sample_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rc = main(["generate", str(sample_dir / "sample_models.py"), "--source-root", str(sample_dir), "--dry-run"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "sample_models_builder.py" in out
    assert "TestFBuilder" in out
    assert not (sample_dir / "sample_models_builder.py").exists()


def test_output_base_and_header(sample_dir: Path, tmp_path: Path) -> None:
    header = tmp_path / "header.txt"
    header.write_text("# Copyright YEAR Example Authors.\n", encoding="utf-8")
    out = tmp_path / "out"

    rc = main(
        [
            "generate",
            str(sample_dir / "sample_models.py"),
            "--source-root",
            str(sample_dir),
            "--output-base",
            str(out),
            "--output-suffix",
            "",
            "--header-file",
            str(header),
        ]
    )
    assert rc == 0
    text = (out / "sample_models.py").read_text(encoding="utf-8")
    assert text.startswith("# Copyright ")
    assert "# Code generated by builder-gen. DO NOT EDIT." in text


def test_config_file_table(sample_dir: Path) -> None:
    cfg = sample_dir / "builder-gen.yaml"
    cfg.write_text("types:\n  TestD:\n    ignore: true\n", encoding="utf-8")

    rc = main(["generate", str(sample_dir / "sample_models.py"), "--config", str(cfg), "--source-root", str(sample_dir)])
    assert rc == 0
    text = (sample_dir / "sample_models_builder.py").read_text(encoding="utf-8")
    assert "class TestDBuilder" not in text
    assert "class TestEBuilder" in text


def test_empty_suffix_requires_output_base(sample_dir: Path) -> None:
    with pytest.raises(CLIError):
        main(["generate", str(sample_dir), "--output-suffix", ""])


def test_requires_subcommand() -> None:
    with pytest.raises(SystemExit):
        main([])
