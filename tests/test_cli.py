from __future__ import annotations

import pytest

import run_brandkit


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("BRANDKIT_CACHE_FILE", str(tmp_path / "cache.json"))
    monkeypatch.setattr(run_brandkit, "load_dotenv", lambda: None)
    monkeypatch.setattr(run_brandkit, "configure_logging", lambda level: None)


def test_parse_args_defaults(tmp_path) -> None:
    args = run_brandkit.parse_args(["--logo", "logo.png", "--name", "Acme"])
    assert args.n == 2
    assert args.format == "png"
    assert args.background_size == "landscape"
    assert args.preset == "core"
    assert not args.dry_run and not args.no_cache and not args.demo


def test_demo_run_writes_kit(logo_path, tmp_path, capsys) -> None:
    out = tmp_path / "out"
    code = run_brandkit.main(
        [
            "--logo", str(logo_path),
            "--name", "Acme",
            "--styles", "minimal",
            "-n", "1",
            "--background-size", "square",
            "--out", str(out),
            "--demo",
        ]
    )

    assert code == 0
    assert len(list(out.glob("*/brandkit.json"))) == 1
    assert len(list(out.glob("*/variants/minimal/0/hero-square.png"))) == 1
    printed = capsys.readouterr().out
    assert "Total API cost: $0.0000" in printed
    assert "Gallery:" in printed


def test_missing_logo_exits_nonzero(tmp_path, capsys) -> None:
    code = run_brandkit.main(["--logo", str(tmp_path / "nope.png"), "--name", "Acme"])
    assert code == 1
    assert "logo file not found" in capsys.readouterr().err


def test_missing_api_key_exits_with_tip(logo_path, tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("BRANDKIT_IMAGE_PROVIDER", raising=False)

    code = run_brandkit.main(
        ["--logo", str(logo_path), "--name", "Acme", "--styles", "minimal", "-n", "1", "--out", str(tmp_path / "out")]
    )

    assert code == 1
    err = capsys.readouterr().err
    assert "OPENAI_API_KEY" in err
    assert "Tip:" in err
