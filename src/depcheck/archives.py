from __future__ import annotations

import logging
import os
import tempfile
import zipfile
from pathlib import Path
from typing import Iterable

from depcheck.models import ArchiveDescriptor, SuppressionRule
from depcheck.settings import PACKAGED_SUPPRESSIONS_FILENAME, PackagedFilter
from depcheck.suppression_xml import MalformedSuppressionFile, parse_suppressions

logger = logging.getLogger(__name__)


class ArchiveReadFailure(RuntimeError):
    pass


def extract_packaged_suppressions(
    archives: Iterable[ArchiveDescriptor],
    archive_filter: PackagedFilter,
    entry_name: str = PACKAGED_SUPPRESSIONS_FILENAME,
) -> list[SuppressionRule]:
    """Imports the suppression file packaged inside each selected archive.

    Every imported rule is marked `base`, so it doesn't show up as an active
    suppression on the importing project's report. Archives without the
    entry contribute nothing; unreadable archives and malformed entries are
    logged and skipped.
    """
    selected = sorted(
        (archive for archive in archives if archive_filter(archive)),
        key=lambda archive: archive.path,
    )
    if not selected:
        return []

    rules: list[SuppressionRule] = []
    with tempfile.TemporaryDirectory(prefix="depcheck-packaged-") as scratch:
        for index, archive in enumerate(selected):
            try:
                extracted = extract_entry(archive, entry_name, Path(scratch) / str(index))
            except ArchiveReadFailure as exc:
                logger.warning(
                    "Failed reading archive [%s], skipping archive...",
                    archive.name,
                )
                logger.debug("%s", exc)
                continue

            if extracted is None:
                continue

            logger.debug("Extracting packaged suppressions file from archive [%s]", archive.name)
            try:
                parsed = parse_suppressions(extracted)
            except MalformedSuppressionFile as exc:
                logger.warning(
                    "Failed parsing suppression rules from file [%s] packaged in [%s], skipping file...",
                    entry_name,
                    archive.name,
                )
                logger.debug("%s", exc)
                continue

            rules.extend(item.with_base(True) for item in parsed)

    return rules


def extract_entry(archive: ArchiveDescriptor, entry_name: str, target_dir: Path) -> Path | None:
    try:
        with zipfile.ZipFile(archive.path) as bundle:
            try:
                info = bundle.getinfo(entry_name)
            except KeyError:
                return None
            target_dir.mkdir(parents=True, exist_ok=True)
            return Path(bundle.extract(info, target_dir))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as exc:
        raise ArchiveReadFailure(f"Cannot read archive {archive.path}: {exc}") from exc
    except RuntimeError as exc:
        # Encrypted entries.
        raise ArchiveReadFailure(f"Cannot extract {entry_name} from {archive.path}: {exc}") from exc


def write_packaged_entry(archive_path: str | Path, content: str, entry_name: str = PACKAGED_SUPPRESSIONS_FILENAME) -> Path:
    """Stores `content` under `entry_name`, creating the archive if needed.

    An existing entry with the same name is replaced.
    """
    target = Path(archive_path)
    target.parent.mkdir(parents=True, exist_ok=True)

    if not target.exists():
        with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
            bundle.writestr(entry_name, content)
        return target

    # Scratch sits beside the archive so the final replace stays on one filesystem.
    with tempfile.TemporaryDirectory(prefix=".depcheck-package-", dir=target.parent) as scratch:
        rebuilt = Path(scratch) / target.name
        with zipfile.ZipFile(target) as source, zipfile.ZipFile(
            rebuilt, "w", compression=zipfile.ZIP_DEFLATED
        ) as bundle:
            for info in source.infolist():
                if info.filename == entry_name:
                    continue
                bundle.writestr(info, source.read(info))
            bundle.writestr(entry_name, content)
        os.replace(rebuilt, target)

    return target
