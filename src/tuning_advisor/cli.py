"""
tuning_advisor.cli

`tuning-advisor` command line entry point.

Responsibilities:
- `lint-guide`: check markdown operations guides (and optionally near-duplicates).
- `check`: evaluate configuration files against a hardware profile.
- `recommend`: print tuned configuration for a hardware profile.

Exit codes: 0 success, 1 findings/lint errors, 2 usage or input errors.
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path

from tuning_advisor import __version__
from tuning_advisor.advisory.engine import evaluate
from tuning_advisor.advisory.findings import Verdict
from tuning_advisor.advisory.hardware import STORAGE_TYPES, TOPOLOGIES, WORKLOADS, HardwareProfile
from tuning_advisor.advisory.recommend import (
    recommend,
    render_jvm_options,
    render_postgresql_conf,
    render_properties,
    render_yaml,
)
from tuning_advisor.advisory.report import render_markdown
from tuning_advisor.advisory.rules import get_rule
from tuning_advisor.advisory.sources import ConfigParseError, ConfigSource
from tuning_advisor.guides.lint import lint_guides
from tuning_advisor.observability.logging import configure_logging, get_logger
from tuning_advisor.settings import get_settings

log = get_logger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_USAGE = 2


def _add_profile_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--cores", type=int, required=True, help="CPU cores per host")
    parser.add_argument("--memory-mb", type=int, required=True, help="Host memory in MB")
    parser.add_argument("--storage", choices=STORAGE_TYPES, default="ssd")
    parser.add_argument("--topology", choices=TOPOLOGIES, default="dedicated")
    parser.add_argument("--workload", choices=WORKLOADS, default="oltp")
    parser.add_argument(
        "--instances", type=int, default=1, help="Application instances sharing the database"
    )


def _profile(args: argparse.Namespace) -> HardwareProfile:
    return HardwareProfile(
        cpu_cores=args.cores,
        memory_mb=args.memory_mb,
        storage=args.storage,
        topology=args.topology,
        workload=args.workload,
        expected_app_instances=args.instances,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tuning-advisor",
        description="Validate and tune Spring Boot / PostgreSQL configuration.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Override TA_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    lint_p = sub.add_parser("lint-guide", help="Lint markdown operations guides")
    lint_p.add_argument("paths", nargs="+", type=Path)
    lint_p.add_argument(
        "--duplicates", action="store_true", help="Also report near-duplicate guide pairs"
    )
    lint_p.add_argument("--threshold", type=float, default=None, help="Duplicate similarity ratio")
    lint_p.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    lint_p.set_defaults(func=cmd_lint_guide)

    check_p = sub.add_parser("check", help="Evaluate configuration files")
    check_p.add_argument("configs", nargs="+", type=Path)
    _add_profile_args(check_p)
    check_p.add_argument("--env", default="prod", help="Target environment (default: prod)")
    check_p.add_argument("--profile", default=None, help="Active Spring profile(s), comma separated")
    check_p.add_argument("--disable", action="append", default=[], metavar="RULE_ID")
    check_p.add_argument("--json", action="store_true", help="Emit the report as JSON")
    check_p.add_argument("--markdown", action="store_true", help="Emit the report as markdown")
    check_p.set_defaults(func=cmd_check)

    rec_p = sub.add_parser("recommend", help="Print tuned configuration")
    _add_profile_args(rec_p)
    rec_p.add_argument(
        "--format", choices=("properties", "yaml", "pg", "jvm", "json"), default="properties"
    )
    rec_p.set_defaults(func=cmd_recommend)
    return parser


def cmd_lint_guide(args: argparse.Namespace) -> int:
    threshold = args.threshold if args.threshold is not None else get_settings().duplicate_threshold
    documents = [(str(p), p.read_text(encoding="utf-8")) for p in args.paths]
    reports, duplicates = lint_guides(documents, duplicate_threshold=threshold)
    if not args.duplicates:
        duplicates = []

    if args.json:
        print(
            json.dumps(
                {
                    "reports": [r.to_dict() for r in reports],
                    "duplicates": [d.to_dict() for d in duplicates],
                },
                indent=2,
            )
        )
    else:
        for report in reports:
            status = "ok" if report.ok else "FAILED"
            print(f"{report.path}: {status} ({report.snippet_count} snippets)")
            for issue in report.issues:
                where = f":{issue.line}" if issue.line else ""
                print(f"  {report.path}{where} {issue.severity.value} [{issue.code}] {issue.message}")
        for dup in duplicates:
            print(f"duplicate: {dup.path_a} ~ {dup.path_b} ({dup.ratio:.0%} similar)")

    return EXIT_OK if all(r.ok for r in reports) else EXIT_FINDINGS


def cmd_check(args: argparse.Namespace) -> int:
    for rule_id in args.disable:
        get_rule(rule_id)
    sources = [ConfigSource(str(p), p.read_text(encoding="utf-8")) for p in args.configs]
    report = evaluate(
        sources,
        _profile(args),
        environment=args.env,
        profile_name=args.profile,
        disabled_rules=args.disable,
    )
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    elif args.markdown:
        print(render_markdown(report))
    else:
        for f in report.findings:
            where = f"{f.source}:{f.line}" if f.source and f.line else (f.source or "-")
            print(f"{f.severity.value:<7} {f.rule_id:<34} {where}  {f.message}")
        counts = report.summary()
        print(
            f"verdict: {report.verdict.value} "
            f"({counts['error']} error, {counts['warning']} warning, {counts['info']} info)"
        )
    return EXIT_FINDINGS if report.verdict == Verdict.fail else EXIT_OK


def cmd_recommend(args: argparse.Namespace) -> int:
    profile = _profile(args)
    recs = recommend(profile)
    mapping = recs.as_mapping()
    if args.format == "json":
        print(json.dumps({"recommendations": recs.grouped(), "rationale": recs.rationale}, indent=2))
    elif args.format == "yaml":
        sys.stdout.write(render_yaml(mapping))
    elif args.format == "pg":
        sys.stdout.write(render_postgresql_conf(mapping, f"Tuned for {profile.cpu_cores} cores"))
    elif args.format == "jvm":
        sys.stdout.write(render_jvm_options(mapping))
    else:
        sys.stdout.write(render_properties(mapping, f"Tuned for {profile.cpu_cores} cores"))
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(
        service_name=settings.service_name,
        level=args.log_level or settings.log_level,
        json_logs=False,
    )
    try:
        return args.func(args)
    except ConfigParseError as e:
        log.error("config_parse_failed", source=e.source, line=e.line, error=e.message)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
