from __future__ import annotations

import re
from dataclasses import asdict, dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, ClassVar, Iterable

EPOCH = date(1970, 1, 1)


@dataclass(frozen=True)
class PropertyType:
    """A suppression value that is either a literal string or a regex.

    Mirrors the `regexStringType` of the dependency-check suppression schema.
    """

    value: str
    regex: bool = False
    case_sensitive: bool = False

    EMPTY: ClassVar["PropertyType"]

    def __post_init__(self) -> None:
        # Suppression files trim element text, so values are kept trimmed.
        object.__setattr__(self, "value", str(self.value).strip())

    @classmethod
    def string(cls, value: str, case_sensitive: bool = False) -> "PropertyType":
        return cls(value=value, regex=False, case_sensitive=case_sensitive)

    @classmethod
    def regex_of(cls, pattern: re.Pattern | str) -> "PropertyType":
        compiled = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
        return cls(
            value=compiled.pattern,
            regex=True,
            case_sensitive=not (compiled.flags & re.IGNORECASE),
        )

    @classmethod
    def coerce(cls, value: "PropertyType | re.Pattern | str") -> "PropertyType":
        # Plain strings in rule constructors are case sensitive literals.
        if isinstance(value, PropertyType):
            return value
        if isinstance(value, re.Pattern):
            return cls.regex_of(value)
        return cls.string(str(value), case_sensitive=True)


PropertyType.EMPTY = PropertyType("", regex=False, case_sensitive=False)


class IdentifierType(Enum):
    FILE_PATH = "filePath"
    GAV = "gav"
    SHA1 = "sha1"
    PACKAGE_URL = "packageUrl"

    @property
    def element(self) -> str:
        return self.value

    @classmethod
    def from_element(cls, name: str) -> "IdentifierType":
        for item in cls:
            if item.value == name:
                return item
        raise ValueError(f"Unknown identifier element: {name}")


@dataclass(frozen=True)
class Identifier:
    """The single optional target of a rule: file path, GAV, SHA1 or package URL."""

    id: PropertyType
    type: IdentifierType

    @classmethod
    def _of(cls, value: re.Pattern | str, case_sensitive: bool, id_type: IdentifierType) -> "Identifier":
        if isinstance(value, re.Pattern):
            return cls(PropertyType.regex_of(value), id_type)
        return cls(PropertyType.string(value, case_sensitive), id_type)

    @classmethod
    def of_file_path(cls, value: re.Pattern | str, case_sensitive: bool = False) -> "Identifier":
        return cls._of(value, case_sensitive, IdentifierType.FILE_PATH)

    @classmethod
    def of_gav(cls, value: re.Pattern | str, case_sensitive: bool = False) -> "Identifier":
        return cls._of(value, case_sensitive, IdentifierType.GAV)

    @classmethod
    def of_package_url(cls, value: re.Pattern | str, case_sensitive: bool = False) -> "Identifier":
        return cls._of(value, case_sensitive, IdentifierType.PACKAGE_URL)

    @classmethod
    def of_sha1(cls, value: str) -> "Identifier":
        return cls(PropertyType.string(value, case_sensitive=False), IdentifierType.SHA1)

    @property
    def is_empty(self) -> bool:
        return self.id == PropertyType.EMPTY


@dataclass(frozen=True)
class SuppressionRule:
    """A dependency-check suppression rule.

    `base` marks inherited rules which are not listed in the "suppressed"
    section of a project's own report. `until` at or before the epoch means
    the rule never expires.
    """

    base: bool = False
    until: date | None = None
    identifier: Identifier | None = None
    cpe: tuple[PropertyType, ...] = ()
    cvss_below: tuple[float, ...] = ()
    cwe: tuple[str, ...] = ()
    cve: tuple[str, ...] = ()
    vulnerability_names: tuple[PropertyType, ...] = ()
    notes: str = ""

    def __post_init__(self) -> None:
        """Normalizes values to the form they take after a trip through a suppression file.

        Raises `ValueError` for empty values, which a suppression file cannot hold.
        """
        if self.identifier is not None and self.identifier.is_empty:
            object.__setattr__(self, "identifier", None)
        if self.identifier is not None and not self.identifier.id.value:
            raise ValueError(f"'{self.identifier.type.element}' identifier must not be empty")
        object.__setattr__(self, "cpe", tuple(PropertyType.coerce(item) for item in self.cpe))
        object.__setattr__(self, "cvss_below", tuple(float(item) for item in self.cvss_below))
        object.__setattr__(self, "cwe", tuple(str(item).strip() for item in self.cwe))
        object.__setattr__(self, "cve", tuple(str(item).strip() for item in self.cve))
        object.__setattr__(
            self,
            "vulnerability_names",
            tuple(PropertyType.coerce(item) for item in self.vulnerability_names),
        )
        for name in ("cwe", "cve"):
            if any(not item for item in getattr(self, name)):
                raise ValueError(f"'{name}' values must not be empty")
        for name in ("cpe", "vulnerability_names"):
            if any(not item.value for item in getattr(self, name)):
                raise ValueError(f"'{name}' values must not be empty")

        notes = (self.notes or "").replace("\r\n", "\n").replace("\r", "\n")
        object.__setattr__(self, "notes", notes if notes.strip() else "")
        if self.until is not None and self.until <= EPOCH:
            object.__setattr__(self, "until", None)

    @property
    def has_until(self) -> bool:
        return self.until is not None and self.until > EPOCH

    def is_expired(self, today: date | None = None) -> bool:
        if not self.has_until:
            return False
        return self.until < (today or date.today())

    def with_base(self, base: bool = True) -> "SuppressionRule":
        if self.base == base:
            return self
        return replace(self, base=base)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["until"] = self.until.isoformat() if self.has_until else None
        if self.identifier is not None:
            payload["identifier"] = {
                "type": self.identifier.type.element,
                **asdict(self.identifier.id),
            }
        return payload


def rule(
    *,
    base: bool = False,
    cpe: Iterable[PropertyType | re.Pattern | str] = (),
    cvss_below: Iterable[float] = (),
    cwe: Iterable[str] = (),
    cve: Iterable[str] = (),
    vulnerability_names: Iterable[PropertyType | re.Pattern | str] = (),
    notes: str = "",
    until: date | None = None,
) -> SuppressionRule:
    """Creates a rule that doesn't target a particular file, GAV, SHA1 nor package URL."""
    return SuppressionRule(
        base=base,
        until=until,
        identifier=None,
        cpe=tuple(cpe),
        cvss_below=tuple(cvss_below),
        cwe=tuple(cwe),
        cve=tuple(cve),
        vulnerability_names=tuple(vulnerability_names),
        notes=notes,
    )


def of_identifier(identifier: Identifier, **kwargs: Any) -> SuppressionRule:
    return replace(rule(**kwargs), identifier=identifier)


def of_file_path(value: str, case_sensitive: bool = False, **kwargs: Any) -> SuppressionRule:
    return of_identifier(Identifier.of_file_path(value, case_sensitive), **kwargs)


def of_file_path_regex(value: re.Pattern | str, **kwargs: Any) -> SuppressionRule:
    return of_identifier(Identifier(PropertyType.regex_of(value), IdentifierType.FILE_PATH), **kwargs)


def of_gav(value: str, case_sensitive: bool = False, **kwargs: Any) -> SuppressionRule:
    return of_identifier(Identifier.of_gav(value, case_sensitive), **kwargs)


def of_gav_regex(value: re.Pattern | str, **kwargs: Any) -> SuppressionRule:
    return of_identifier(Identifier(PropertyType.regex_of(value), IdentifierType.GAV), **kwargs)


def of_package_url(value: str, case_sensitive: bool = False, **kwargs: Any) -> SuppressionRule:
    return of_identifier(Identifier.of_package_url(value, case_sensitive), **kwargs)


def of_package_url_regex(value: re.Pattern | str, **kwargs: Any) -> SuppressionRule:
    return of_identifier(Identifier(PropertyType.regex_of(value), IdentifierType.PACKAGE_URL), **kwargs)


def of_sha1(value: str, **kwargs: Any) -> SuppressionRule:
    return of_identifier(Identifier.of_sha1(value), **kwargs)


def dedupe_rules(rules: Iterable[SuppressionRule]) -> list[SuppressionRule]:
    deduped: dict[SuppressionRule, None] = {}
    for item in rules:
        deduped.setdefault(item, None)
    return list(deduped)


@dataclass(frozen=True)
class ModuleCoordinate:
    group_id: str
    artifact_id: str
    version: str

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"

    @classmethod
    def parse(cls, text: str) -> "ModuleCoordinate":
        parts = [part.strip() for part in text.split(":")]
        if len(parts) != 3 or not all(parts):
            raise ValueError(f"Expected 'group:artifact:version', got: {text!r}")
        return cls(group_id=parts[0], artifact_id=parts[1], version=parts[2])


@dataclass(frozen=True)
class ArchiveDescriptor:
    """A dependency archive, optionally with the coordinate it was resolved from."""

    path: str
    coordinate: ModuleCoordinate | None = None

    @property
    def name(self) -> str:
        return self.path.replace("\\", "/").rsplit("/", 1)[-1]
