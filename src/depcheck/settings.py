from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable

from depcheck.models import ArchiveDescriptor, SuppressionRule

PACKAGED_SUPPRESSIONS_FILENAME = "packaged-suppressions-file.xml"

PackagedFilter = Callable[[ArchiveDescriptor], bool]


def blacklist_all(archive: ArchiveDescriptor) -> bool:
    return False


def whitelist_all(archive: ArchiveDescriptor) -> bool:
    return True


def of_gav(pred: Callable[[str, str, str], bool]) -> PackagedFilter:
    """Selects archives by (group id, artifact id, version).

    Archives without a resolved coordinate never match.
    """

    def _filter(archive: ArchiveDescriptor) -> bool:
        coordinate = archive.coordinate
        if coordinate is None:
            return False
        return bool(pred(coordinate.group_id, coordinate.artifact_id, coordinate.version))

    return _filter


def of_file(pred: Callable[[Path], bool]) -> PackagedFilter:
    return lambda archive: bool(pred(Path(archive.path)))


def of_filename(pred: Callable[[str], bool]) -> PackagedFilter:
    return lambda archive: bool(pred(archive.name))


def of_filename_regex(pattern: re.Pattern | str) -> PackagedFilter:
    compiled = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
    return lambda archive: compiled.search(archive.name) is not None


@dataclass(frozen=True)
class SuppressionFilesSettings:
    files: tuple[str, ...] = ()

    @classmethod
    def of(cls, *files: str | Path) -> "SuppressionFilesSettings":
        return cls(files=tuple(str(item) for item in files))

    @property
    def urls(self) -> tuple[str, ...]:
        return tuple(item for item in self.files if is_url(item))


@dataclass(frozen=True)
class HostedSuppressionsSettings:
    # Consumed by the scanning engine itself; carried here as plain data.
    enabled: bool = True
    force_update: bool = False
    url: str | None = None
    valid_for_hours: int | None = None


@dataclass(frozen=True)
class SuppressionSettings:
    """Suppression rule sources of a project.

    `files` are suppression files or URLs, `suppressions` the rules defined
    inline in the project configuration. Packaged suppressions are rules
    shipped inside dependency archives; they are only imported when
    `packaged_enabled` is set, from the archives selected by `packaged_filter`.
    """

    files: SuppressionFilesSettings = field(default_factory=SuppressionFilesSettings)
    hosted: HostedSuppressionsSettings = field(default_factory=HostedSuppressionsSettings)
    suppressions: tuple[SuppressionRule, ...] = ()
    packaged_enabled: bool = False
    packaged_filter: PackagedFilter = field(default=blacklist_all, compare=False)

    @classmethod
    def default(cls) -> "SuppressionSettings":
        return cls()

    def replace(self, **changes: Any) -> "SuppressionSettings":
        return replace(self, **changes)


@dataclass(frozen=True)
class ScopesSettings:
    compile: bool = True
    test: bool = False
    runtime: bool = True
    provided: bool = True
    optional: bool = True


@dataclass(frozen=True)
class CheckSettings:
    # 11.0 is above any CVSS score, so the build never fails by default.
    fail_cvss_score: float = 11.0
    skip: bool = False
    output_dir: str = "target"
    scan_set: tuple[str, ...] = ()
    scopes: ScopesSettings = field(default_factory=ScopesSettings)
    suppressions: SuppressionSettings = field(default_factory=SuppressionSettings)


def is_url(location: str) -> bool:
    return location.lower().startswith(("http://", "https://", "file://"))
