import zipfile
from pathlib import Path

import pytest

from depcheck.settings import PACKAGED_SUPPRESSIONS_FILENAME

SUPPRESSIONS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<suppressions xmlns="https://jeremylong.github.io/DependencyCheck/dependency-suppression.1.3.xsd">
    <suppress>
        <notes><![CDATA[
        file name: commons-cli-1.4.jar
        ]]></notes>
        <gav regex="true">^commons-cli:commons-cli:.*$</gav>
        <cpe>cpe:/a:apache:commons_cli</cpe>
    </suppress>
    <suppress base="true" until="2030-06-30Z">
        <sha1>66a4c5d3c8e2d4a1cd2f0b2a3e8b3a0c8d6f2b11</sha1>
        <cve>CVE-2020-13956</cve>
        <cve>CVE-2021-22569</cve>
    </suppress>
    <suppress>
        <packageUrl regex="true" caseSensitive="true">^pkg:maven/org\\.yaml/snakeyaml@.*$</packageUrl>
        <cvssBelow>7.5</cvssBelow>
        <cwe>502</cwe>
        <vulnerabilityName>CVE-2022-1471</vulnerabilityName>
    </suppress>
</suppressions>
"""

PACKAGED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<suppressions xmlns="https://jeremylong.github.io/DependencyCheck/dependency-suppression.1.3.xsd">
    <suppress base="false">
        <notes><![CDATA[Some packaged suppression for commons-cli]]></notes>
        <gav regex="true" caseSensitive="false">^commons-cli:commons-cli:.*$</gav>
        <cve>CVE-2021-0001</cve>
    </suppress>
</suppressions>
"""

OTHER_PACKAGED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<suppressions xmlns="https://jeremylong.github.io/DependencyCheck/dependency-suppression.1.3.xsd">
    <suppress>
        <cpe>cpe:/a:python:python</cpe>
    </suppress>
</suppressions>
"""

MALFORMED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<suppressions xmlns="https://jeremylong.github.io/DependencyCheck/dependency-suppression.1.3.xsd">
    <suppress>
        <cpe>cpe:/a:apache:commons_cli
    </suppress>
</suppressions>
"""


def build_archive(path: Path, entries: dict[str, str]) -> Path:
    with zipfile.ZipFile(path, "w") as bundle:
        bundle.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
        for name, content in entries.items():
            bundle.writestr(name, content)
    return path


@pytest.fixture
def suppression_file(tmp_path: Path) -> Path:
    path = tmp_path / "suppressions.xml"
    path.write_text(SUPPRESSIONS_XML, encoding="utf-8")
    return path


@pytest.fixture
def malformed_file(tmp_path: Path) -> Path:
    path = tmp_path / "malformed-suppressions.xml"
    path.write_text(MALFORMED_XML, encoding="utf-8")
    return path


@pytest.fixture
def packaged_archives(tmp_path: Path) -> dict[str, Path]:
    return {
        "foobar": build_archive(
            tmp_path / "net.nmoncho-foobar-1.23.jar",
            {PACKAGED_SUPPRESSIONS_FILENAME: PACKAGED_XML},
        ),
        "barfoo": build_archive(
            tmp_path / "nmoncho.net-barfoo-4.56.jar",
            {PACKAGED_SUPPRESSIONS_FILENAME: OTHER_PACKAGED_XML},
        ),
        "plain": build_archive(tmp_path / "plain-lib-0.1.jar", {"com/example/Foo.class": "cafebabe"}),
    }


@pytest.fixture
def archive_factory(tmp_path: Path):
    def _build(name: str, entries: dict[str, str]) -> Path:
        return build_archive(tmp_path / name, entries)

    return _build
