from pathlib import Path

from fuelkl.cli import main, parse_args


def test_parse_args_update_defaults():
    args = parse_args(["update"])
    assert args.command == "update"
    assert args.config_dir == "./config"
    assert args.overlay_config_dir is None
    assert args.output is None


def test_parse_args_cache_fetch():
    args = parse_args(["cache", "fetch", "https://fuel.example/prices.json", "--base-url", "https://fuel.example/"])
    assert args.cache_command == "fetch"
    assert args.url == "https://fuel.example/prices.json"
    assert args.profile is None


def test_update_without_credential_exits_1(monkeypatch, tmp_path: Path):
    monkeypatch.delenv("RAPIDAPI_KEY", raising=False)

    exit_code = main(["update", "--data-dir", str(tmp_path / "data"), "--output", str(tmp_path / "prices.json")])

    assert exit_code == 1
    assert not (tmp_path / "prices.json").exists()
    assert not (tmp_path / "data").exists()
