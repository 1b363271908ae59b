"""Tests for the session library (seeding, import, export, delete)."""

import json

import pytest

from mesmerdrift.session_library import SessionLibrary, SessionSource, export_file_name


def _custom(path, session_id="custom_one", name="Custom One", duration=12):
    path.write_text(json.dumps({
        "id": session_id,
        "name": name,
        "duration_minutes": duration,
        "phases": [{"start_minute": 0, "name": "Only"}],
        "effects": {"flash": {"enabled": True, "frequency": 20}},
    }), encoding="utf-8")
    return path


@pytest.fixture
def library(tmp_path):
    return SessionLibrary(tmp_path / "sessions")


def test_bundled_sessions_seeded(library):
    assert "morning_drift" in library
    entry = library.get("morning_drift")
    assert entry.source is SessionSource.BUILT_IN
    assert entry.path.parent == library.sessions_dir
    assert not entry.can_delete


def test_seeding_does_not_overwrite_user_copy(tmp_path):
    sessions = tmp_path / "sessions"
    first = SessionLibrary(sessions)
    path = first.get("morning_drift").path
    path.write_text(path.read_text(encoding="utf-8").replace("Morning Drift", "My Drift"), encoding="utf-8")
    second = SessionLibrary(sessions)
    assert second.get_definition("morning_drift").name == "My Drift"


def test_import_and_list(library, tmp_path):
    entry = library.import_session(_custom(tmp_path / "c.session.json"))
    assert entry.source is SessionSource.CUSTOM
    assert entry.path.exists()
    ids = [e.id for e in library.list_sessions()]
    assert ids[0] == "morning_drift"
    assert "custom_one" in ids


def test_import_duplicate_ids_get_suffix(library, tmp_path):
    src = _custom(tmp_path / "c.session.json")
    assert library.import_session(src).id == "custom_one"
    assert library.import_session(src).id == "custom_one_1"
    assert library.import_session(src).id == "custom_one_2"
    # Built-in ids are suffixed too
    bundled = library.get("morning_drift").path
    assert library.import_session(bundled).id == "morning_drift_1"


def test_imports_survive_reload(library, tmp_path):
    library.import_session(_custom(tmp_path / "c.session.json"))
    library.import_session(_custom(tmp_path / "c.session.json"))
    again = SessionLibrary(library.sessions_dir)
    assert "custom_one_1" in again
    assert again.get("custom_one_1").source is SessionSource.CUSTOM


def test_import_invalid_raises(library, tmp_path):
    bad = _custom(tmp_path / "bad.session.json", duration=0)
    with pytest.raises(ValueError):
        library.import_session(bad)
    assert "custom_one" not in library


def test_invalid_files_skipped_on_reload(library):
    (library.sessions_dir / "broken.session.json").write_text("{", encoding="utf-8")
    library.reload()
    assert "morning_drift" in library


def test_delete_custom_only(library, tmp_path):
    entry = library.import_session(_custom(tmp_path / "c.session.json"))
    assert library.delete_session("morning_drift") is False
    assert library.delete_session("missing") is False
    assert library.delete_session(entry.id) is True
    assert not entry.path.exists()
    assert entry.id not in library


def test_export(library, tmp_path):
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    written = library.export_session("morning_drift", out_dir)
    assert written.name == "Morning_Drift.session.json"
    assert json.loads(written.read_text(encoding="utf-8"))["id"] == "morning_drift"

    named = library.export_session("morning_drift", tmp_path / "mine.json")
    assert named.name == "mine.session.json"

    with pytest.raises(KeyError):
        library.export_session("missing", out_dir)


def test_export_file_name(pink_session):
    assert export_file_name(pink_session) == "Pink_Test.session.json"


def test_import_file_stays_inside_sessions_dir(library, tmp_path):
    entry = library.import_session(_custom(tmp_path / "c.session.json", session_id="../escape"))
    assert entry.id == "../escape"
    assert entry.path == library.sessions_dir / "escape.session.json"
    assert not (library.sessions_dir.parent / "escape.session.json").exists()


def test_import_never_overwrites_another_session_file(library, tmp_path):
    builtin_path = library.get("morning_drift").path
    before = builtin_path.read_bytes()

    entry = library.import_session(_custom(tmp_path / "c.session.json", session_id="morning drift"))
    assert entry.path == library.sessions_dir / "morning_drift_1.session.json"
    assert builtin_path.read_bytes() == before

    library.reload()
    assert library.get_definition("morning_drift").name == "Morning Drift"
    assert library.get_definition("morning drift").name == "Custom One"
