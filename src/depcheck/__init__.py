from depcheck.models import (
    ArchiveDescriptor,
    Identifier,
    IdentifierType,
    ModuleCoordinate,
    PropertyType,
    SuppressionRule,
)
from depcheck.settings import PACKAGED_SUPPRESSIONS_FILENAME, SuppressionSettings
from depcheck.suppression_xml import MalformedSuppressionFile, parse_suppressions, to_suppressions_xml
from depcheck.suppressions import collect, write_export_suppressions

__all__ = [
    "ArchiveDescriptor",
    "Identifier",
    "IdentifierType",
    "MalformedSuppressionFile",
    "ModuleCoordinate",
    "PACKAGED_SUPPRESSIONS_FILENAME",
    "PropertyType",
    "SuppressionRule",
    "SuppressionSettings",
    "collect",
    "parse_suppressions",
    "to_suppressions_xml",
    "write_export_suppressions",
]
