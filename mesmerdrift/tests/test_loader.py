"""Tests for session definition loading."""

import json
from pathlib import Path

import pytest

from mesmerdrift.platform_paths import get_bundled_sessions_dir
from mesmerdrift.session import Effect, InvalidSessionDefinitionError, load_session_definition
from mesmerdrift.session.loader import (
    MAX_SIZE_BYTES,
    load_session_definition_from_json_str,
    save_session_definition,
)


def _write(path: Path, data, encoding="utf-8"):
    path.write_text(json.dumps(data), encoding=encoding)
    return path


def test_bundled_morning_drift_loads():
    definition = load_session_definition(get_bundled_sessions_dir() / "morning_drift.session.json")
    assert definition.id == "morning_drift"
    assert definition.duration_minutes == 30
    assert [p.name for p in definition.phases][:2] == ["Settling In", "Pink Awakening"]
    pink = definition.parameters.get(Effect.PINK_FILTER)
    assert pink.is_delayed and pink.start_minute == 10
    assert definition.parameters.get(Effect.BUBBLES).is_burst
    assert definition.parameters.get(Effect.SPIRAL).enabled is False


def test_missing_file(tmp_path):
    with pytest.raises(ValueError, match="not found"):
        load_session_definition(tmp_path / "nope.session.json")


def test_invalid_json(tmp_path):
    p = tmp_path / "bad.session.json"
    p.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid JSON"):
        load_session_definition(p)


def test_top_level_must_be_object(tmp_path):
    p = _write(tmp_path / "list.session.json", [1, 2])
    with pytest.raises(ValueError, match="object"):
        load_session_definition(p)


def test_file_too_large(tmp_path):
    p = tmp_path / "big.session.json"
    p.write_bytes(b" " * (MAX_SIZE_BYTES + 1))
    with pytest.raises(ValueError, match="too large"):
        load_session_definition(p)


def test_bom_tolerated(tmp_path):
    p = _write(tmp_path / "bom.session.json", {"id": "b", "name": "B", "duration_minutes": 5}, encoding="utf-8-sig")
    assert load_session_definition(p).id == "b"


def test_structural_error_is_invalid_definition(tmp_path):
    p = _write(tmp_path / "zero.session.json", {"id": "z", "name": "Z", "duration_minutes": 0})
    with pytest.raises(InvalidSessionDefinitionError, match="duration"):
        load_session_definition(p)


def test_non_numeric_duration(tmp_path):
    p = _write(tmp_path / "nan.session.json", {"id": "z", "name": "Z", "duration_minutes": "long"})
    with pytest.raises(InvalidSessionDefinitionError):
        load_session_definition(p)


def test_from_json_str():
    definition = load_session_definition_from_json_str('{"id": "s", "name": "S", "duration_minutes": 3}')
    assert definition.duration_minutes == 3
    with pytest.raises(ValueError):
        load_session_definition_from_json_str("[")


def test_save_then_load(tmp_path, pink_session):
    target = tmp_path / "pink.session.json"
    save_session_definition(pink_session, target)
    assert load_session_definition(target) == pink_session


@pytest.mark.parametrize("literal", ["NaN", "Infinity"])
def test_non_finite_duration_literal_rejected(literal):
    raw = (
        '{"id": "x", "name": "x", "duration_minutes": %s, '
        '"phases": [{"start_minute": 0, "name": "a"}]}' % literal
    )
    with pytest.raises(InvalidSessionDefinitionError, match="duration"):
        load_session_definition_from_json_str(raw)


def test_non_finite_start_minute_in_file_rejected(tmp_path):
    p = tmp_path / "nan_start.session.json"
    p.write_text(
        '{"id": "x", "name": "x", "duration_minutes": 30, '
        '"effects": {"pink_filter": {"enabled": true, "start_minute": NaN}}}',
        encoding="utf-8",
    )
    with pytest.raises(InvalidSessionDefinitionError, match="start_minute"):
        load_session_definition(p)
