from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from depcheck.archives import extract_packaged_suppressions, write_packaged_entry
from depcheck.http import fetch_suppression_file
from depcheck.models import ArchiveDescriptor, SuppressionRule, dedupe_rules
from depcheck.settings import PACKAGED_SUPPRESSIONS_FILENAME, CheckSettings, SuppressionSettings, is_url
from depcheck.suppression_xml import (
    MalformedSuppressionFile,
    parse_suppressions,
    to_suppressions_xml,
    write_suppressions_file,
)

logger = logging.getLogger(__name__)


def parse_suppression_file(location: str | Path) -> list[SuppressionRule]:
    """Parses a suppression file or URL, returning no rules when it can't be read."""
    text = str(location)
    name = _display_name(text)
    try:
        if is_url(text):
            return parse_suppressions(fetch_suppression_file(text))
        return parse_suppressions(Path(text))
    except (MalformedSuppressionFile, OSError, RuntimeError) as exc:
        logger.warning("Failed parsing suppression rules from file [%s], skipping file...", name)
        logger.debug("%s", exc)
        return []


def collect_file_suppressions(settings: SuppressionSettings) -> list[SuppressionRule]:
    rules: list[SuppressionRule] = []
    for location in settings.files.files:
        if not is_url(location) and not Path(location).exists():
            logger.debug("Ignoring missing suppression file [%s]", location)
            continue
        logger.debug("Including suppressions rules from [%s]", _display_name(location))
        rules.extend(parse_suppression_file(location))
    return rules


def collect_imported_packaged_suppressions(
    settings: SuppressionSettings,
    archives: Iterable[ArchiveDescriptor],
) -> list[SuppressionRule]:
    """Collects the rules packaged in this project's dependency archives.

    Nothing is opened unless packaged suppressions are enabled.
    """
    if not settings.packaged_enabled:
        logger.debug("Packaged suppressions rules disabled, skipping...")
        return []

    return extract_packaged_suppressions(archives, settings.packaged_filter)


def collect(
    settings: SuppressionSettings,
    archives: Iterable[ArchiveDescriptor] = (),
) -> list[SuppressionRule]:
    """All rules for a project: inline, from suppression files, and imported."""
    inline = list(settings.suppressions)
    from_files = collect_file_suppressions(settings)
    imported = collect_imported_packaged_suppressions(settings, archives)
    return dedupe_rules([*inline, *from_files, *imported])


def collect_for_project(
    config: CheckSettings,
    archives: Iterable[ArchiveDescriptor] = (),
) -> list[SuppressionRule]:
    """Rules to inject for a project; none when the check is skipped."""
    if config.skip:
        logger.debug("Dependency check skipped, not collecting suppression rules...")
        return []
    return collect(config.suppressions, archives)


def collect_export_suppressions(settings: SuppressionSettings) -> list[SuppressionRule]:
    # Imported packaged rules are never re-exported, so they don't pile up
    # transitively along a dependency chain.
    rules = [*settings.suppressions, *collect_file_suppressions(settings)]
    return dedupe_rules(item.with_base(True) for item in rules)


def write_export_suppressions(target: str | Path, settings: SuppressionSettings) -> bool:
    """Writes the project's exportable rules, all marked `base`.

    Returns False, without creating `target`, when there is nothing to
    export. Write failures propagate.
    """
    rules = collect_export_suppressions(settings)
    if not rules:
        logger.info("No suppressions defined, skipping packaged suppression file generation...")
        return False

    path = Path(target)
    logger.info("Generating packaged suppression file to [%s]", path.resolve())
    write_suppressions_file(path, rules)
    return True


def export_packaged_suppressions(resource_dir: str | Path, settings: SuppressionSettings) -> list[Path]:
    if not settings.packaged_enabled:
        logger.info("Packaged suppressions is disabled, skipping packaged suppression file generation...")
        return []

    target = Path(resource_dir) / PACKAGED_SUPPRESSIONS_FILENAME
    if write_export_suppressions(target, settings):
        return [target]
    return []


def package_suppressions(archive_path: str | Path, settings: SuppressionSettings) -> bool:
    """Embeds the exported rules in `archive_path` under the well-known entry name."""
    rules = collect_export_suppressions(settings)
    if not rules:
        logger.info("No suppressions defined, skipping packaged suppression file generation...")
        return False

    logger.info("Packaging suppression rules into [%s]", Path(archive_path).resolve())
    write_packaged_entry(archive_path, to_suppressions_xml(rules))
    return True


def _display_name(location: str) -> str:
    if is_url(location):
        return location
    return Path(location).name
