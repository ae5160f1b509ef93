from __future__ import annotations

import json
import re
from datetime import date
from pathlib import Path
from typing import Any

from depcheck.models import Identifier, IdentifierType, PropertyType, SuppressionRule
from depcheck.settings import (
    CheckSettings,
    HostedSuppressionsSettings,
    PackagedFilter,
    ScopesSettings,
    SuppressionFilesSettings,
    SuppressionSettings,
    blacklist_all,
    of_filename_regex,
    of_gav,
    whitelist_all,
)

_IDENTIFIER_KEYS = {
    "file_path": IdentifierType.FILE_PATH,
    "gav": IdentifierType.GAV,
    "sha1": IdentifierType.SHA1,
    "package_url": IdentifierType.PACKAGE_URL,
}


class ConfigError(ValueError):
    pass


def load_config(path: str | Path) -> CheckSettings:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        try:
            raw = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Config file is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("Config must be a JSON object")

    base_dir = config_path.resolve().parent
    scopes_raw = _ensure_dict(raw.get("scopes", {}), "scopes")
    defaults = ScopesSettings()
    scopes = ScopesSettings(
        compile=bool(scopes_raw.get("compile", defaults.compile)),
        test=bool(scopes_raw.get("test", defaults.test)),
        runtime=bool(scopes_raw.get("runtime", defaults.runtime)),
        provided=bool(scopes_raw.get("provided", defaults.provided)),
        optional=bool(scopes_raw.get("optional", defaults.optional)),
    )

    try:
        fail_cvss_score = float(raw.get("fail_cvss_score", 11.0))
    except (TypeError, ValueError) as exc:
        raise ConfigError("'fail_cvss_score' must be a number") from exc

    return CheckSettings(
        fail_cvss_score=fail_cvss_score,
        skip=bool(raw.get("skip", False)),
        output_dir=str(raw.get("output_dir", "target")),
        scan_set=tuple(_ensure_string_list(raw.get("scan_set", []))),
        scopes=scopes,
        suppressions=load_suppression_settings(raw.get("suppressions", {}), base_dir=base_dir),
    )


def load_suppression_settings(raw: object, base_dir: Path | None = None) -> SuppressionSettings:
    section = _ensure_dict(raw, "suppressions")

    files = []
    for item in _ensure_string_list(section.get("files", [])):
        if base_dir is not None and "://" not in item and not Path(item).is_absolute():
            item = str(base_dir / item)
        files.append(item)

    hosted_raw = _ensure_dict(section.get("hosted", {}), "suppressions.hosted")
    hosted = HostedSuppressionsSettings(
        enabled=bool(hosted_raw.get("enabled", True)),
        force_update=bool(hosted_raw.get("force_update", False)),
        url=_optional_str(hosted_raw.get("url")),
        valid_for_hours=_optional_int(hosted_raw.get("valid_for_hours"), "suppressions.hosted.valid_for_hours"),
    )

    rules_raw = section.get("rules", [])
    if not isinstance(rules_raw, list):
        raise ConfigError("'suppressions.rules' must be a list")

    return SuppressionSettings(
        files=SuppressionFilesSettings(files=tuple(files)),
        hosted=hosted,
        suppressions=tuple(parse_rule(item) for item in rules_raw),
        packaged_enabled=bool(section.get("packaged_enabled", False)),
        packaged_filter=parse_packaged_filter(section.get("packaged_filter")),
    )


def parse_packaged_filter(raw: object) -> PackagedFilter:
    if raw is None:
        return blacklist_all
    if isinstance(raw, str):
        raw = {"type": raw}
    item = _ensure_dict(raw, "suppressions.packaged_filter")

    filter_type = str(item.get("type", "")).strip().lower()
    if filter_type == "blacklist_all":
        return blacklist_all
    if filter_type == "whitelist_all":
        return whitelist_all
    if filter_type == "filename_regex":
        pattern = _optional_str(item.get("pattern"))
        if not pattern:
            raise ConfigError("'filename_regex' filter is missing 'pattern'")
        return of_filename_regex(_compile(pattern))
    if filter_type == "gav":
        group = _compile_optional(item.get("group_id"))
        artifact = _compile_optional(item.get("artifact_id"))
        version = _compile_optional(item.get("version"))

        def _matches(group_id: str, artifact_id: str, version_id: str) -> bool:
            return (
                (group is None or group.fullmatch(group_id) is not None)
                and (artifact is None or artifact.fullmatch(artifact_id) is not None)
                and (version is None or version.fullmatch(version_id) is not None)
            )

        return of_gav(_matches)

    raise ConfigError(f"Unknown packaged filter type: {filter_type or '<missing>'}")


def parse_rule(raw: object) -> SuppressionRule:
    item = _ensure_dict(raw, "suppression rule")

    identifiers = [key for key in _IDENTIFIER_KEYS if key in item]
    if len(identifiers) > 1:
        raise ConfigError(f"Rule has more than one identifier: {', '.join(identifiers)}")

    identifier = None
    if identifiers:
        key = identifiers[0]
        id_type = _IDENTIFIER_KEYS[key]
        if id_type is IdentifierType.SHA1:
            sha1 = _optional_str(item[key])
            if not sha1:
                raise ConfigError("'sha1' must not be empty")
            identifier = Identifier.of_sha1(sha1)
        else:
            identifier = Identifier(_parse_property(item[key], key), id_type)

    until = None
    if item.get("until") is not None:
        try:
            until = date.fromisoformat(str(item["until"]))
        except ValueError as exc:
            raise ConfigError(f"Invalid 'until' date: {item['until']!r}") from exc

    try:
        cvss_below = tuple(float(value) for value in _ensure_list(item.get("cvss_below", []), "cvss_below"))
    except (TypeError, ValueError) as exc:
        raise ConfigError("'cvss_below' must be a list of numbers") from exc

    cpe = tuple(_parse_property(value, "cpe") for value in _ensure_list(item.get("cpe", []), "cpe"))
    vulnerability_names = tuple(
        _parse_property(value, "vulnerability_name")
        for value in _ensure_list(item.get("vulnerability_name", []), "vulnerability_name")
    )

    try:
        return SuppressionRule(
            base=bool(item.get("base", False)),
            until=until,
            identifier=identifier,
            cpe=cpe,
            cvss_below=cvss_below,
            cwe=tuple(_ensure_string_list(item.get("cwe", []))),
            cve=tuple(_ensure_string_list(item.get("cve", []))),
            vulnerability_names=vulnerability_names,
            notes=str(item.get("notes", "")),
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid suppression rule: {exc}") from exc


def _parse_property(raw: object, key: str) -> PropertyType:
    if isinstance(raw, str):
        if not raw.strip():
            raise ConfigError(f"'{key}' must not be empty")
        return PropertyType.string(raw, case_sensitive=False)
    item = _ensure_dict(raw, key)
    value = _optional_str(item.get("value"))
    if not value:
        raise ConfigError(f"'{key}' is missing 'value'")
    regex = bool(item.get("regex", False))
    if regex:
        _compile(value)
    return PropertyType(value=value, regex=regex, case_sensitive=bool(item.get("case_sensitive", False)))


def _compile(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f"Invalid regex {pattern!r}: {exc}") from exc


def _compile_optional(value: object) -> re.Pattern | None:
    text = _optional_str(value)
    return _compile(text) if text else None


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value: object, key: str) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be an integer") from exc


def _ensure_dict(value: object, key: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be an object")
    return value


def _ensure_list(value: object, key: str) -> list[Any]:
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list")
    return value


def _ensure_string_list(value: object) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError("Expected a list of strings")
    return [str(item) for item in value]
