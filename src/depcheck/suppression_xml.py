from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import BinaryIO, Iterable
from xml.sax.saxutils import escape, quoteattr

from depcheck.models import Identifier, IdentifierType, PropertyType, SuppressionRule

SUPPRESSION_NAMESPACE = "https://jeremylong.github.io/DependencyCheck/dependency-suppression.1.3.xsd"

_LEGACY_NAMESPACE = "https://www.owasp.org/index.php/OWASP_Dependency_Check_Suppression"
_VERSIONED_NAMESPACE = re.compile(
    r"^https?://jeremylong\.github\.io/DependencyCheck/dependency-suppression\.1\.\d+\.xsd$"
)

_INVALID_XML_CHARS = re.compile(r"[^\t\n\r\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]")

_INDENT = "    "
_TRUE = {"true", "1"}
_FALSE = {"false", "0"}


class MalformedSuppressionFile(ValueError):
    pass


def parse_suppressions(source: bytes | str | Path | BinaryIO) -> list[SuppressionRule]:
    """Parses a suppression document into rules, in document order.

    `source` may be raw bytes, a binary stream or a file path. Missing files
    raise `OSError`; anything that is not a well formed suppression document
    raises `MalformedSuppressionFile`.
    """
    try:
        if isinstance(source, (bytes, bytearray)):
            root = ET.fromstring(source)
        else:
            root = ET.parse(source).getroot()
    except ET.ParseError as exc:
        raise MalformedSuppressionFile(f"Invalid XML: {exc}") from exc

    namespace, name = _split_tag(root.tag)
    if name != "suppressions":
        raise MalformedSuppressionFile(f"Expected root element 'suppressions', got '{name}'")
    if namespace and namespace != _LEGACY_NAMESPACE and not _VERSIONED_NAMESPACE.match(namespace):
        raise MalformedSuppressionFile(f"Unsupported suppression namespace: {namespace}")

    rules: list[SuppressionRule] = []
    for index, element in enumerate(root, start=1):
        child_namespace, child_name = _split_tag(element.tag)
        if child_namespace != namespace or child_name != "suppress":
            raise MalformedSuppressionFile(f"Unexpected element '{child_name}' in 'suppressions'")
        try:
            rules.append(_decode_suppress(element, namespace))
        except MalformedSuppressionFile as exc:
            raise MalformedSuppressionFile(f"suppress #{index}: {exc}") from exc

    return rules


def _decode_suppress(element: ET.Element, namespace: str) -> SuppressionRule:
    base = _parse_bool(element.get("base"), "base")
    until = _parse_date(element.get("until"))

    identifier: Identifier | None = None
    notes = ""
    seen_notes = False
    cpe: list[PropertyType] = []
    cvss_below: list[float] = []
    cwe: list[str] = []
    cve: list[str] = []
    vulnerability_names: list[PropertyType] = []

    for child in element:
        child_namespace, name = _split_tag(child.tag)
        if child_namespace != namespace:
            raise MalformedSuppressionFile(f"Element '{name}' is outside the suppression namespace")
        if len(child):
            raise MalformedSuppressionFile(f"Element '{name}' must not have child elements")

        if name == "notes":
            if seen_notes:
                raise MalformedSuppressionFile("More than one 'notes' element")
            seen_notes = True
            text = child.text or ""
            notes = text if text.strip() else ""
            continue

        value = (child.text or "").strip()
        if not value:
            raise MalformedSuppressionFile(f"Element '{name}' must not be empty")

        if name in {item.element for item in IdentifierType}:
            if identifier is not None:
                raise MalformedSuppressionFile("A rule can have at most one identifier")
            id_type = IdentifierType.from_element(name)
            if id_type is IdentifierType.SHA1:
                identifier = Identifier.of_sha1(value)
            else:
                identifier = Identifier(_decode_property(child, value), id_type)
        elif name == "cpe":
            cpe.append(_decode_property(child, value))
        elif name == "vulnerabilityName":
            vulnerability_names.append(_decode_property(child, value))
        elif name == "cvssBelow":
            try:
                cvss_below.append(float(value))
            except ValueError as exc:
                raise MalformedSuppressionFile(f"Invalid cvssBelow value: {value!r}") from exc
        elif name == "cwe":
            cwe.append(value)
        elif name == "cve":
            cve.append(value)
        else:
            raise MalformedSuppressionFile(f"Unexpected element '{name}' in 'suppress'")

    return SuppressionRule(
        base=base,
        until=until,
        identifier=identifier,
        cpe=tuple(cpe),
        cvss_below=tuple(cvss_below),
        cwe=tuple(cwe),
        cve=tuple(cve),
        vulnerability_names=tuple(vulnerability_names),
        notes=notes,
    )


def _decode_property(element: ET.Element, value: str) -> PropertyType:
    return PropertyType(
        value=value,
        regex=_parse_bool(element.get("regex"), "regex"),
        case_sensitive=_parse_bool(element.get("caseSensitive"), "caseSensitive"),
    )


def _split_tag(tag: str) -> tuple[str, str]:
    if tag.startswith("{"):
        namespace, _, name = tag[1:].partition("}")
        return namespace, name
    return "", tag


def _parse_bool(value: str | None, attribute: str) -> bool:
    if value is None:
        return False
    text = value.strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise MalformedSuppressionFile(f"Invalid boolean for '{attribute}': {value!r}")


def _parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    # xs:date allows a trailing timezone, which is irrelevant for expiry.
    match = re.match(r"^\s*(\d{4}-\d{2}-\d{2})(Z|[+-]\d{2}:\d{2})?\s*$", value)
    if not match:
        raise MalformedSuppressionFile(f"Invalid date for 'until': {value!r}")
    try:
        return date.fromisoformat(match.group(1))
    except ValueError as exc:
        raise MalformedSuppressionFile(f"Invalid date for 'until': {value!r}") from exc


def to_suppressions_xml(rules: Iterable[SuppressionRule]) -> str:
    """Renders rules as a suppression document.

    Element order inside `suppress` follows the schema sequence, so it is
    fixed regardless of how the rule was built. Raises `ValueError` when a
    value holds a character XML 1.0 cannot represent.
    """
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f"<suppressions xmlns={quoteattr(SUPPRESSION_NAMESPACE)}>",
    ]
    for item in rules:
        lines.extend(_encode_suppress(item))
    lines.append("</suppressions>")
    return "\n".join(lines) + "\n"


def _encode_suppress(item: SuppressionRule) -> list[str]:
    attributes = f"base={quoteattr(_bool(item.base))}"
    if item.has_until:
        attributes += f" until={quoteattr(item.until.strftime('%Y-%m-%d'))}"

    body: list[str] = []
    if item.notes.strip():
        body.append(f"<notes>{_cdata(item.notes)}</notes>")
    if item.identifier is not None and not item.identifier.is_empty:
        body.append(_encode_identifier(item.identifier))
    body.extend(_encode_property("cpe", value) for value in item.cpe)
    body.extend(f"<cvssBelow>{_decimal(value)}</cvssBelow>" for value in item.cvss_below)
    body.extend(f"<cwe>{_text(value)}</cwe>" for value in item.cwe)
    body.extend(f"<cve>{_text(value)}</cve>" for value in item.cve)
    body.extend(_encode_property("vulnerabilityName", value) for value in item.vulnerability_names)

    if not body:
        return [f"{_INDENT}<suppress {attributes}/>"]
    return [
        f"{_INDENT}<suppress {attributes}>",
        *(f"{_INDENT * 2}{line}" for line in body),
        f"{_INDENT}</suppress>",
    ]


def _encode_identifier(identifier: Identifier) -> str:
    if identifier.type is IdentifierType.SHA1:
        return f"<sha1>{_text(identifier.id.value)}</sha1>"
    return _encode_property(identifier.type.element, identifier.id)


def _encode_property(name: str, value: PropertyType) -> str:
    return (
        f"<{name} regex={quoteattr(_bool(value.regex))}"
        f" caseSensitive={quoteattr(_bool(value.case_sensitive))}>"
        f"{_text(value.value)}</{name}>"
    )


def _bool(value: bool) -> str:
    return "true" if value else "false"


def _decimal(value: float) -> str:
    text = repr(float(value))
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    return text


def _text(value: str) -> str:
    _check_chars(value)
    # A raw carriage return would come back as a line feed.
    return escape(value, {"\r": "&#13;"})


def _cdata(text: str) -> str:
    _check_chars(text)
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _check_chars(text: str) -> None:
    match = _INVALID_XML_CHARS.search(text)
    if match:
        raise ValueError(f"Character {match.group()!r} cannot be written to a suppression file: {text!r}")


def write_suppressions_file(path: str | Path, rules: Iterable[SuppressionRule]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(to_suppressions_xml(rules), encoding="utf-8")
    return target
