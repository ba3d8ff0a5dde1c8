"""Tests for the CLI: argument parsing, criteria building, dry run."""

from pathlib import Path
from textwrap import dedent

import pytest

from carhunt.core.config import Settings, SiteSettings
from main import build_criteria, dry_run, main, parse_args


class TestParseArgs:
    def test_search_flags(self) -> None:
        args = parse_args([
            "search", "--make", "BMW", "--model", "3 Series", "--max-price", "20000",
            "--min-year", "2018", "--stream",
        ])
        assert args.command == "search"
        assert args.make == "BMW"
        assert args.max_price == 20000
        assert args.min_year == 2018
        assert args.stream is True
        assert args.config == "config/settings.yaml"

    def test_serve_defaults(self) -> None:
        args = parse_args(["serve"])
        assert args.host == "127.0.0.1"
        assert args.port == 3001

    def test_no_command_exits(self) -> None:
        with pytest.raises(SystemExit):
            parse_args([])


class TestBuildCriteria:
    def test_years_become_ages(self) -> None:
        args = parse_args(["search", "--min-year", "2000", "--max-year", "2000"])
        criteria = build_criteria(args)
        assert criteria.min_age == criteria.max_age
        assert criteria.max_age is not None and criteria.max_age > 0

    def test_inverted_bounds_rejected(self) -> None:
        args = parse_args(["search", "--min-price", "9000", "--max-price", "1000"])
        with pytest.raises(ValueError):
            build_criteria(args)


class TestDryRun:
    def test_prints_plan(self, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CARTOTRADE_USERNAME", "u")
        monkeypatch.setenv("CARTOTRADE_PASSWORD", "p")
        monkeypatch.delenv("DISPOSALNETWORK_USERNAME", raising=False)
        settings = Settings(sites={
            "cartotrade": SiteSettings(),
            "disposalnetwork": SiteSettings(uses_proxy=True),
        })
        dry_run(settings, build_criteria(parse_args(["search", "--make", "BMW"])))
        out = capsys.readouterr().out
        assert "make=BMW" in out
        assert "cartotrade: group direct, credentials OK" in out
        assert "disposalnetwork: group proxied, credentials MISSING" in out

    def test_main_dry_run(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text(dedent("""\
            sites:
              mystery: {}
        """))
        main(["search", "--config", str(path), "--dry-run"])
        assert "mystery (no driver)" in capsys.readouterr().out

    def test_main_bad_config_exits_1(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["search", "--config", str(tmp_path / "missing.yaml")])
        assert exc.value.code == 1
