from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path

from depcheck.config import ConfigError, load_config
from depcheck.models import ArchiveDescriptor, ModuleCoordinate
from depcheck.settings import CheckSettings
from depcheck.suppressions import collect_for_project, package_suppressions, write_export_suppressions


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="depcheck",
        description="Suppression rule management for dependency-check scans",
    )
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser(
        "list-suppressions",
        help="List rules defined in the project or imported from packaged suppressions",
    )
    list_parser.add_argument("--config", default="depcheck.json")
    list_parser.add_argument(
        "--archive",
        action="append",
        default=[],
        help="Dependency archive, optionally as PATH=group:artifact:version",
    )
    list_parser.add_argument("--all", action="store_true", help="Include base rules")

    export_parser = subparsers.add_parser("export", help="Write the exportable suppression file")
    export_parser.add_argument("--config", default="depcheck.json")
    export_parser.add_argument("--output", required=True)

    package_parser = subparsers.add_parser("package", help="Embed exportable suppressions into an archive")
    package_parser.add_argument("--config", default="depcheck.json")
    package_parser.add_argument("--archive-path", required=True)

    settings_parser = subparsers.add_parser("list-settings", help="Show the effective settings")
    settings_parser.add_argument("--config", default="depcheck.json")

    return parser


def parse_archive(value: str) -> ArchiveDescriptor:
    path, sep, coordinate = value.partition("=")
    if not sep:
        return ArchiveDescriptor(path=path)
    return ArchiveDescriptor(path=path, coordinate=ModuleCoordinate.parse(coordinate))


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.error(str(exc))
        return 2

    if args.command == "list-suppressions":
        try:
            archives = [parse_archive(item) for item in args.archive]
        except ValueError as exc:
            parser.error(str(exc))
            return 2

        rules = collect_for_project(config, archives)
        shown = rules if args.all else [item for item in rules if not item.base]
        payload = {
            "total_rules": len(rules),
            "shown_rules": len(shown),
            "rules": [item.to_dict() for item in shown],
        }
        print(json.dumps(payload, indent=2, ensure_ascii=True))
        return 0

    if args.command == "export":
        generated = write_export_suppressions(args.output, config.suppressions)
        print(
            json.dumps(
                {"generated": generated, "output": str(Path(args.output).resolve())},
                indent=2,
            )
        )
        return 0

    if args.command == "package":
        packaged = package_suppressions(args.archive_path, config.suppressions)
        print(
            json.dumps(
                {"packaged": packaged, "archive": str(Path(args.archive_path).resolve())},
                indent=2,
            )
        )
        return 0

    if args.command == "list-settings":
        print(json.dumps(describe_settings(config), indent=2, ensure_ascii=True))
        return 0

    parser.error(f"Unsupported command: {args.command}")
    return 2


def describe_settings(config: CheckSettings) -> dict:
    suppressions = config.suppressions
    return {
        "fail_cvss_score": config.fail_cvss_score,
        "skip": config.skip,
        "output_dir": config.output_dir,
        "scan_set": list(config.scan_set),
        "scopes": asdict(config.scopes),
        "suppressions": {
            "files": list(suppressions.files.files),
            "hosted": asdict(suppressions.hosted),
            "rules": len(suppressions.suppressions),
            "packaged_enabled": suppressions.packaged_enabled,
        },
    }


if __name__ == "__main__":
    raise SystemExit(main())
