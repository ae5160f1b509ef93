from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from depcheck.models import ArchiveDescriptor, SuppressionRule

logger = logging.getLogger(__name__)

SUPPRESSION_OBJECT_KEY = "suppression.rules"


class VulnerabilityFoundError(RuntimeError):
    pass


@dataclass(frozen=True)
class Vulnerability:
    name: str
    cvss_v2: float | None = None
    cvss_v3: float | None = None
    unscored_severity: str | None = None


@dataclass(frozen=True)
class Dependency:
    name: str
    vulnerabilities: tuple[Vulnerability, ...] = ()


class SuppressionAnalyzer(ABC):
    @property
    @abstractmethod
    def enabled(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def prepare(self, engine: "Engine") -> None:
        raise NotImplementedError


class Engine(ABC):
    """The vulnerability scanning engine, as seen by the suppression pipeline."""

    @property
    @abstractmethod
    def analyzers(self) -> list[Any]:
        raise NotImplementedError

    @abstractmethod
    def get_object(self, key: str) -> Any:
        raise NotImplementedError

    @abstractmethod
    def put_object(self, key: str, value: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def scan(self, path: str | Path) -> None:
        raise NotImplementedError

    @abstractmethod
    def analyze_dependencies(self) -> None:
        raise NotImplementedError

    @property
    @abstractmethod
    def dependencies(self) -> list[Dependency]:
        raise NotImplementedError


def add_suppression_rules(rules: Iterable[SuppressionRule], engine: Engine) -> int:
    """Registers `rules` with every enabled suppression analyzer of `engine`.

    Analyzers are prepared first so the rules they load themselves (files,
    hosted suppressions) come before the project's own and imported rules.
    Returns the number of rules injected.
    """
    rule_list = list(rules)
    logger.info("Adding [%d] suppression rules to the engine", len(rule_list))

    injected = 0
    for analyzer in engine.analyzers:
        if not isinstance(analyzer, SuppressionAnalyzer):
            continue
        analyzer.prepare(engine)
        if not analyzer.enabled:
            logger.debug("Suppression analyzer %s is disabled", type(analyzer).__name__)
            continue
        engine_rules = list(engine.get_object(SUPPRESSION_OBJECT_KEY) or [])
        engine_rules.extend(rule_list)
        engine.put_object(SUPPRESSION_OBJECT_KEY, engine_rules)
        injected = len(rule_list)
    return injected


def estimate_cvss_v2(severity: str) -> float:
    value = severity.strip().lower()
    if value in {"critical", "high"}:
        return 10.0
    if value in {"moderate", "medium"}:
        return 6.9
    if value in {"info", "informational", "low"}:
        return 3.9
    return 0.0


def has_failing_vulnerabilities(fail_cvss_score: float, dependencies: Iterable[Dependency]) -> bool:
    # A threshold at or below zero fails on any vulnerability, scored or not.
    for dependency in dependencies:
        for vulnerability in dependency.vulnerabilities:
            if fail_cvss_score <= 0.0:
                return True
            if vulnerability.cvss_v2 is not None and vulnerability.cvss_v2 >= fail_cvss_score:
                return True
            if vulnerability.cvss_v3 is not None and vulnerability.cvss_v3 >= fail_cvss_score:
                return True
            if (
                vulnerability.unscored_severity is not None
                and estimate_cvss_v2(vulnerability.unscored_severity) >= fail_cvss_score
            ):
                return True
    return False


def fail_on_found_vulnerabilities(fail_cvss_score: float, engine: Engine, project_name: str) -> None:
    if has_failing_vulnerabilities(fail_cvss_score, engine.dependencies):
        logger.error("Project [%s] has vulnerabilities at or above CVSS [%s]", project_name, fail_cvss_score)
        raise VulnerabilityFoundError(
            f"Vulnerability with CVSS score higher than [{fail_cvss_score}] found"
        )


def analyze_project(
    project_name: str,
    engine: Engine,
    archives: Iterable[ArchiveDescriptor],
    rules: Iterable[SuppressionRule],
    scan_set: Iterable[str | Path] = (),
    fail_cvss_score: float = 11.0,
) -> None:
    add_suppression_rules(rules, engine)
    for archive in archives:
        engine.scan(archive.path)
    for path in scan_set:
        engine.scan(path)
    engine.analyze_dependencies()
    fail_on_found_vulnerabilities(fail_cvss_score, engine, project_name)
