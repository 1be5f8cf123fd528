"""
burnwatch CLI: inspect and validate monitor definitions.

Usage:
    burnwatch validate monitor.yaml
    burnwatch rules monitor.yaml
    burnwatch version
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from burnwatch import __version__
from burnwatch.slo.durations import format_duration
from burnwatch.slo.spec import MonitorSpec, load_monitor_spec


def _load(path: str) -> Optional[MonitorSpec]:
    try:
        return load_monitor_spec(path)
    except FileNotFoundError:
        print(f"error: {path} not found", file=sys.stderr)
    except yaml.YAMLError as e:
        print(f"error: {path} is not valid YAML: {e}", file=sys.stderr)
    except ValidationError as e:
        print(f"error: {path} is not a valid monitor spec:", file=sys.stderr)
        for err in e.errors():
            loc = ".".join(str(p) for p in err["loc"]) or "<root>"
            print(f"  {loc}: {err['msg']}", file=sys.stderr)
    return None


def _validate(path: str, as_json: bool) -> int:
    spec = _load(path)
    if spec is None:
        return 1
    summary: Dict[str, Any] = {
        "file": path,
        "indicators": len(spec.indicators),
        "objectives": len(spec.objectives),
        "alert_rules": sum(len(o.alert_rules) for o in spec.objectives),
        "channels": len(spec.alerting.channels),
    }
    if as_json:
        print(json.dumps(summary, indent=2))
    else:
        print(
            f"{path}: OK ({summary['indicators']} indicator(s), "
            f"{summary['objectives']} objective(s), {summary['alert_rules']} rule(s), "
            f"{summary['channels']} channel(s))"
        )
    return 0


def _rules(path: str, as_json: bool) -> int:
    spec = _load(path)
    if spec is None:
        return 1
    rows: List[Dict[str, Any]] = []
    for slo in spec.build_slos():
        for rule in slo.alert_rules:
            rows.append({
                "slo": slo.name,
                "sli": slo.sli_name,
                "target": slo.target,
                "rule": rule.name,
                "severity": rule.severity.value,
                "burn_rate": rule.burn_rate,
                "window": format_duration(rule.window),
                # burn rate at which this rule fires, as an SLI average
                "fires_below": round(100.0 - rule.burn_rate * slo.error_budget, 6),
            })
    if as_json:
        print(json.dumps(rows, indent=2))
        return 0
    if not rows:
        print("No alert rules defined.")
        return 0
    for row in rows:
        print(
            f"{row['slo']}/{row['rule']} [{row['severity']}] "
            f"burn_rate>={row['burn_rate']} over {row['window']} "
            f"(fires when {row['sli']} < {row['fires_below']})"
        )
    return 0


def cli(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point. Returns exit code."""
    parser = argparse.ArgumentParser(
        prog="burnwatch",
        description="SLI/SLO monitoring with burn-rate alerting",
    )
    subparsers = parser.add_subparsers(dest="command")

    validate_parser = subparsers.add_parser("validate", help="Validate a monitor spec file")
    validate_parser.add_argument("file")
    validate_parser.add_argument("--json", action="store_true", help="Print a JSON summary")

    rules_parser = subparsers.add_parser("rules", help="List burn-rate alert rules")
    rules_parser.add_argument("file")
    rules_parser.add_argument("--json", action="store_true", help="Print rules as JSON")

    subparsers.add_parser("version", help="Show version")

    parsed = parser.parse_args(args)

    if parsed.command == "version":
        print(f"burnwatch {__version__}")
        return 0
    if parsed.command == "validate":
        return _validate(parsed.file, parsed.json)
    if parsed.command == "rules":
        return _rules(parsed.file, parsed.json)

    parser.print_help()
    return 1


def main() -> None:
    sys.exit(cli())


if __name__ == "__main__":
    main()
