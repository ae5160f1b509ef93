import logging
import tempfile
import zipfile
from pathlib import Path

import pytest

from depcheck.archives import extract_packaged_suppressions, write_packaged_entry
from depcheck.models import ArchiveDescriptor, ModuleCoordinate
from depcheck.settings import (
    PACKAGED_SUPPRESSIONS_FILENAME,
    blacklist_all,
    of_file,
    of_filename,
    of_filename_regex,
    of_gav,
    whitelist_all,
)


def _descriptors(packaged_archives):
    return {
        ArchiveDescriptor(str(packaged_archives["foobar"]), ModuleCoordinate("net.nmoncho", "foobar", "1.23")),
        ArchiveDescriptor(str(packaged_archives["barfoo"]), ModuleCoordinate("moncho.net", "barfoo", "4.56")),
        ArchiveDescriptor(str(packaged_archives["plain"])),
    }


def test_extracts_and_marks_rules_as_base(packaged_archives):
    rules = extract_packaged_suppressions(_descriptors(packaged_archives), whitelist_all)

    assert len(rules) == 2
    assert all(item.base for item in rules)
    notes = {item.notes for item in rules}
    assert "Some packaged suppression for commons-cli" in notes


def test_blacklist_filter_opens_nothing(packaged_archives, monkeypatch):
    def _fail(*args, **kwargs):
        raise AssertionError("archive should not be opened")

    monkeypatch.setattr(zipfile, "ZipFile", _fail)

    assert extract_packaged_suppressions(_descriptors(packaged_archives), blacklist_all) == []


def test_gav_filter_skips_archives_without_coordinates(packaged_archives):
    archives = _descriptors(packaged_archives)

    selected = extract_packaged_suppressions(archives, of_gav(lambda group, artifact, version: True))
    by_name = extract_packaged_suppressions(archives, of_filename(lambda name: name.startswith("plain")))

    assert len(selected) == 2
    assert by_name == []


def test_file_filter_receives_archive_path(packaged_archives):
    rules = extract_packaged_suppressions(
        _descriptors(packaged_archives), of_file(lambda path: path.stem.startswith("net.nmoncho"))
    )

    assert [item.notes for item in rules] == ["Some packaged suppression for commons-cli"]


def test_filename_regex_filter(packaged_archives):
    rules = extract_packaged_suppressions(_descriptors(packaged_archives), of_filename_regex(r"barfoo"))

    assert len(rules) == 1
    assert rules[0].cpe[0].value == "cpe:/a:python:python"


def test_corrupt_archive_is_skipped_with_warning(tmp_path, packaged_archives, caplog):
    broken = tmp_path / "broken-1.0.jar"
    broken.write_bytes(b"definitely not a zip file")
    archives = [ArchiveDescriptor(str(broken)), ArchiveDescriptor(str(packaged_archives["foobar"]))]

    with caplog.at_level(logging.WARNING, logger="depcheck.archives"):
        rules = extract_packaged_suppressions(archives, whitelist_all)

    assert len(rules) == 1
    assert any("broken-1.0.jar" in record.getMessage() for record in caplog.records)


def test_malformed_packaged_file_is_skipped(archive_factory, caplog):
    archive = archive_factory("bad-1.0.jar", {PACKAGED_SUPPRESSIONS_FILENAME: "<suppressions><oops></suppressions>"})

    with caplog.at_level(logging.WARNING, logger="depcheck.archives"):
        rules = extract_packaged_suppressions([ArchiveDescriptor(str(archive))], whitelist_all)

    assert rules == []
    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "bad-1.0.jar" in warnings[0].getMessage()


def test_entry_must_match_exact_name(archive_factory):
    archive = archive_factory(
        "nested-1.0.jar",
        {f"META-INF/{PACKAGED_SUPPRESSIONS_FILENAME}": "<suppressions/>"},
    )

    assert extract_packaged_suppressions([ArchiveDescriptor(str(archive))], whitelist_all) == []


def test_scratch_directory_is_removed(packaged_archives, monkeypatch, tmp_path):
    created = []
    original = tempfile.TemporaryDirectory

    def _tracking(*args, **kwargs):
        kwargs["dir"] = str(tmp_path)
        scratch = original(*args, **kwargs)
        created.append(Path(scratch.name))
        return scratch

    monkeypatch.setattr(tempfile, "TemporaryDirectory", _tracking)

    extract_packaged_suppressions(_descriptors(packaged_archives), whitelist_all)

    assert created
    assert not any(path.exists() for path in created)


def test_write_packaged_entry_replaces_existing_entry(archive_factory):
    archive = archive_factory("mine-1.0.jar", {PACKAGED_SUPPRESSIONS_FILENAME: "old"})

    write_packaged_entry(archive, "new")

    with zipfile.ZipFile(archive) as bundle:
        names = bundle.namelist()
        assert names.count(PACKAGED_SUPPRESSIONS_FILENAME) == 1
        assert bundle.read(PACKAGED_SUPPRESSIONS_FILENAME) == b"new"
        assert "META-INF/MANIFEST.MF" in names


def test_failed_rewrite_leaves_archive_untouched(archive_factory, monkeypatch):
    archive = archive_factory("mine-1.0.jar", {PACKAGED_SUPPRESSIONS_FILENAME: "old"})
    before = archive.read_bytes()

    def _fail(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("depcheck.archives.os.replace", _fail)

    with pytest.raises(OSError):
        write_packaged_entry(archive, "new")

    assert archive.read_bytes() == before
    assert not any(path.name.startswith(".depcheck") for path in archive.parent.iterdir())
