from pathlib import Path

import pytest

from htmlhost.archive import ArchiveExtractor, ArchiveValidator
from htmlhost.core.errors import ExtractionFailed, SizeLimitExceeded
from tests.conftest import build_zip

INDEX = "<!DOCTYPE html><html><body>hi</body></html>"


def _extract(data: bytes, destination: Path, limit: int = 1024 * 1024):
    report = ArchiveValidator(limit).validate(data)
    return report, ArchiveExtractor(limit).extract(data, report, destination)


def test_common_folder_is_stripped(tmp_path: Path) -> None:
    data = build_zip({"myproject/index.html": INDEX, "myproject/css/a.css": "a{}"})
    _, result = _extract(data, tmp_path)
    assert (tmp_path / "index.html").read_text() == INDEX
    assert (tmp_path / "css" / "a.css").read_text() == "a{}"
    assert not (tmp_path / "myproject").exists()
    assert result.files_written == 2
    assert result.bytes_written == len(INDEX) + 3


def test_entry_point_renamed_to_lowercase(tmp_path: Path) -> None:
    _extract(build_zip({"INDEX.HTML": INDEX}), tmp_path)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["index.html"]


def test_metadata_is_not_extracted(tmp_path: Path) -> None:
    data = build_zip({"__MACOSX/._index.html": "junk", "index.html": INDEX})
    _, result = _extract(data, tmp_path)
    assert result.files_written == 1
    assert [p.name for p in tmp_path.iterdir()] == ["index.html"]


def test_refuses_invalid_report(tmp_path: Path) -> None:
    data = build_zip({"index.html": INDEX, "../evil.html": "x"})
    report = ArchiveValidator().validate(data)
    with pytest.raises(ExtractionFailed):
        ArchiveExtractor().extract(data, report, tmp_path)
    assert not (tmp_path.parent / "evil.html").exists()


def test_understated_entry_size_is_caught(tmp_path: Path) -> None:
    data = build_zip({"index.html": INDEX})
    report = ArchiveValidator().validate(data)
    report.entries[0].size = 5
    with pytest.raises(SizeLimitExceeded):
        ArchiveExtractor().extract(data, report, tmp_path)


def test_total_written_is_capped(tmp_path: Path) -> None:
    data = build_zip({"index.html": INDEX, "a.txt": "x" * 100})
    report = ArchiveValidator(max_total_size=10_000).validate(data)
    with pytest.raises(SizeLimitExceeded):
        ArchiveExtractor(max_total_size=60).extract(data, report, tmp_path)


def test_entry_escaping_destination_is_refused(tmp_path: Path) -> None:
    destination = tmp_path / "upload"
    destination.mkdir()
    data = build_zip({"index.html": INDEX, "a.css": "a{}"})
    report = ArchiveValidator().validate(data)
    assert report.valid
    asset = next(e for e in report.entries if not e.is_entry_point)
    asset.path = "../evil.css"

    with pytest.raises(ExtractionFailed):
        ArchiveExtractor().extract(data, report, destination)
    assert not (tmp_path / "evil.css").exists()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["upload"]
