"""Tests for CLI."""

from __future__ import annotations

import json
import textwrap

import pytest

from burnwatch.cli.main import cli

VALID = textwrap.dedent(
    """
    indicators:
      - name: availability
        type: availability
        config: {endpoint: https://api.example.com/health}
    objectives:
      - name: availability_slo
        sli: availability
        target: 99.9
        window: 30d
        alert_rules:
          - {name: fast_burn, severity: critical, burn_rate: 14.4, window: 1h}
          - {name: slow_burn, severity: warning, burn_rate: 1, window: 24h}
    alerting:
      channels:
        - {type: webhook, url: "https://hooks.example.com/slo"}
    """
)


@pytest.fixture
def valid_file(tmp_path):
    path = tmp_path / "monitor.yaml"
    path.write_text(VALID, encoding="utf-8")
    return str(path)


class TestCLI:
    def test_version(self, capsys):
        assert cli(["version"]) == 0
        assert "0.1.0" in capsys.readouterr().out

    def test_no_args(self):
        assert cli([]) == 1

    def test_validate_ok(self, valid_file, capsys):
        assert cli(["validate", valid_file]) == 0
        out = capsys.readouterr().out
        assert "OK" in out
        assert "1 indicator(s)" in out
        assert "2 rule(s)" in out

    def test_validate_json(self, valid_file, capsys):
        assert cli(["validate", valid_file, "--json"]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["objectives"] == 1
        assert summary["channels"] == 1

    def test_validate_invalid(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("objectives:\n  - {name: o, sli: missing, target: 99}\n", encoding="utf-8")
        assert cli(["validate", str(path)]) == 1
        assert "unknown SLI" in capsys.readouterr().err

    def test_validate_bad_yaml(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("indicators: [\n", encoding="utf-8")
        assert cli(["validate", str(path)]) == 1
        assert "not valid YAML" in capsys.readouterr().err

    def test_validate_missing_file(self, tmp_path, capsys):
        assert cli(["validate", str(tmp_path / "nope.yaml")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_rules(self, valid_file, capsys):
        assert cli(["rules", valid_file]) == 0
        out = capsys.readouterr().out
        assert "availability_slo/fast_burn [critical] burn_rate>=14.4 over 1h" in out
        assert "availability_slo/slow_burn [warning] burn_rate>=1.0 over 1d" in out

    def test_rules_json(self, valid_file, capsys):
        assert cli(["rules", valid_file, "--json"]) == 0
        rows = json.loads(capsys.readouterr().out)
        assert [r["rule"] for r in rows] == ["fast_burn", "slow_burn"]
        assert rows[0]["fires_below"] == pytest.approx(98.56)

    def test_rules_none(self, tmp_path, capsys):
        path = tmp_path / "empty.yaml"
        path.write_text("{}\n", encoding="utf-8")
        assert cli(["rules", str(path)]) == 0
        assert "No alert rules" in capsys.readouterr().out
