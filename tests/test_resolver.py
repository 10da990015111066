import os

import pytest

from staticserver import resolver
from staticserver.config import ServerSettings
from staticserver.resolver import (
    Directory,
    FileReady,
    Forbidden,
    Index,
    NotFound,
    find_index,
    normalize_path,
    resolve,
)

from conftest import INDEX_HTML, STYLE_CSS


def test_normalize_path_adds_single_leading_slash():
    assert normalize_path("style.css") == "/style.css"
    assert normalize_path("/style.css") == "/style.css"
    assert normalize_path("") == "/"


def test_root_resolves_to_first_existing_index(settings, site):
    # index.htm is listed first but does not exist
    assert find_index(settings) == Index("/index.html")

    with resolve("/", settings) as outcome:
        assert isinstance(outcome, FileReady)
        assert outcome.path == "/index.html"
        assert outcome.size == len(INDEX_HTML)


def test_index_candidates_keep_configured_order(settings, site):
    (site / "index.htm").write_bytes(b"htm")

    with resolve("/", settings) as outcome:
        assert outcome.path == "/index.htm"


def test_root_without_index_is_a_directory(site):
    (site / "index.html").unlink()
    settings = ServerSettings(root_directory=str(site), index_files=["index.html"])

    outcome = resolve("/", settings)
    assert isinstance(outcome, Directory)
    assert outcome.path == str(site) + "/"


def test_empty_path_is_treated_as_root(settings):
    with resolve("", settings) as outcome:
        assert outcome.path == "/index.html"


def test_path_without_leading_slash(settings):
    with resolve("style.css", settings) as outcome:
        assert isinstance(outcome, FileReady)
        assert outcome.path == "/style.css"
        assert outcome.file.read() == STYLE_CSS


def test_file_ready_reports_size_and_mtime(settings, site):
    with resolve("/style.css", settings) as outcome:
        assert outcome.size == len(STYLE_CSS)
        assert outcome.mtime == os.stat(site / "style.css").st_mtime
    assert outcome.file.closed


def test_missing_file_is_not_found(settings):
    assert resolve("/missing.txt", settings) == NotFound("/missing.txt")


def test_path_through_a_file_is_not_found(settings):
    assert isinstance(resolve("/style.css/extra", settings), NotFound)


def test_path_with_nul_byte_is_not_found(settings):
    assert resolve("/a\x00b.txt", settings) == NotFound("/a\x00b.txt")


def test_directory(settings, site):
    assert resolve("/docs", settings) == Directory(str(site) + "/docs")


def test_unopenable_file_is_forbidden(settings, monkeypatch):
    def deny(*args, **kwargs):
        raise PermissionError("permission denied")

    monkeypatch.setattr(resolver, "open", deny, raising=False)

    assert resolve("/style.css", settings) == Forbidden("/style.css")


@pytest.mark.skipif(not hasattr(os, "geteuid") or os.geteuid() == 0,
                    reason="root ignores file permissions")
def test_unreadable_file_on_disk_is_forbidden(settings, site):
    target = site / "style.css"
    target.chmod(0)
    try:
        assert isinstance(resolve("/style.css", settings), Forbidden)
    finally:
        target.chmod(0o644)


def test_escape_from_root_is_forbidden(settings, tmp_path):
    (tmp_path / "secret.txt").write_text("secret")

    assert isinstance(resolve("/../secret.txt", settings), Forbidden)
