"""Tests for session definition models and validation."""

import dataclasses

import pytest

from mesmerdrift.session import (
    BurstSetting,
    Effect,
    EffectSettings,
    InvalidSessionDefinitionError,
    ParameterSet,
    Phase,
    RampSetting,
    SessionDefinition,
)


def _definition(**overrides):
    base = dict(
        id="t",
        name="T",
        duration_minutes=30,
        phases=(Phase(0, "A"), Phase(10, "B")),
        parameters=ParameterSet(),
    )
    base.update(overrides)
    return SessionDefinition(**base)


def test_valid_definition(pink_session):
    ok, error = pink_session.validate()
    assert ok, error
    pink_session.ensure_valid()


@pytest.mark.parametrize("duration", [0, -5])
def test_duration_must_be_positive(duration):
    ok, error = _definition(duration_minutes=duration, phases=()).validate()
    assert not ok
    assert "duration" in error


def test_ensure_valid_raises_value_error_subclass():
    with pytest.raises(ValueError):
        _definition(duration_minutes=0).ensure_valid()
    with pytest.raises(InvalidSessionDefinitionError):
        _definition(duration_minutes=0).ensure_valid()


def test_first_phase_must_start_at_zero():
    ok, error = _definition(phases=(Phase(1, "late"),)).validate()
    assert not ok and "minute 0" in error


def test_phases_strictly_increasing():
    ok, error = _definition(phases=(Phase(0, "A"), Phase(10, "B"), Phase(10, "C"))).validate()
    assert not ok and "strictly increasing" in error


def test_phase_beyond_duration_rejected():
    ok, _ = _definition(phases=(Phase(0, "A"), Phase(31, "B"))).validate()
    assert not ok


def test_empty_phase_list_allowed():
    ok, error = _definition(phases=()).validate()
    assert ok, error


def test_ramp_end_must_not_exceed_duration():
    params = ParameterSet.of(EffectSettings(Effect.PINK_FILTER, enabled=True, opacity=RampSetting(0, 15, 10, 40)))
    ok, error = _definition(parameters=params).validate()
    assert not ok and "beyond duration" in error


def test_ramp_window_must_be_increasing():
    params = ParameterSet.of(EffectSettings(Effect.PINK_FILTER, enabled=True, opacity=RampSetting(0, 15, 20, 10)))
    ok, error = _definition(parameters=params).validate()
    assert not ok and "empty" in error


def test_channel_value_outside_domain_rejected():
    params = ParameterSet.of(EffectSettings(Effect.SPIRAL, enabled=True, opacity=RampSetting.constant(80)))
    ok, error = _definition(parameters=params).validate()
    assert not ok and "spiral.opacity" in error


def test_unsupported_channel_rejected():
    params = ParameterSet.of(EffectSettings(Effect.PINK_FILTER, enabled=True, frequency=RampSetting.constant(3)))
    ok, error = _definition(parameters=params).validate()
    assert not ok and "no 'frequency' channel" in error


def test_burst_gap_order_rejected():
    burst = BurstSetting(burst_count=3, per_burst=3, min_gap_minutes=9, max_gap_minutes=5)
    params = ParameterSet.of(EffectSettings(Effect.BUBBLES, enabled=True, burst=burst))
    ok, error = _definition(parameters=params).validate()
    assert not ok and "min_gap" in error


def test_bonus_xp_is_not_range_checked():
    # Carried unmodified into SESSION_COMPLETED, whatever the caller supplies
    ok, error = _definition(bonus_xp=-1).validate()
    assert ok, error


def test_definition_is_immutable(pink_session):
    with pytest.raises(dataclasses.FrozenInstanceError):
        pink_session.duration_minutes = 10
    with pytest.raises(TypeError):
        pink_session.parameters.effects[Effect.FLASH] = EffectSettings(Effect.FLASH)


def test_feature_classification():
    assert EffectSettings(Effect.PINK_FILTER, enabled=True, start_minute=10).is_delayed
    assert EffectSettings(Effect.FLASH, enabled=True).is_immediate
    burst = EffectSettings(Effect.BUBBLES, enabled=True, start_minute=4, burst=BurstSetting(2, 3, 5, 8))
    assert burst.is_burst and not burst.is_delayed
    disabled = EffectSettings(Effect.SPIRAL, enabled=False, start_minute=5)
    assert not (disabled.is_delayed or disabled.is_burst or disabled.is_immediate)


def test_parameter_set_defaults_to_disabled():
    params = ParameterSet.of(EffectSettings(Effect.FLASH, enabled=True))
    assert params.get(Effect.SPIRAL).enabled is False
    assert [s.effect for s in params] == list(Effect)


def test_ramp_setting_value_at_uses_session_duration():
    setting = RampSetting(0, 30)
    assert setting.value_at(15, 30) == pytest.approx(15)
    assert setting.value_at(30, 30) == 30


def test_from_dict_round_trip_preserves_definition(pink_session):
    again = SessionDefinition.from_dict(pink_session.to_dict())
    assert again == pink_session


def test_from_dict_accepts_bare_numbers_and_ramps():
    definition = SessionDefinition.from_dict({
        "id": "x",
        "name": "X",
        "duration_minutes": 20,
        "phases": [{"start_minute": 0, "name": "Only"}],
        "effects": {
            "flash": {"enabled": True, "frequency": 12},
            "pink_filter": {"enabled": True, "start_minute": 5, "opacity": {"start": 0, "end": 10, "from_minute": 5}},
            "master": {"intensity": {"start": 100, "end": 60}},
        },
    })
    assert definition.validate() == (True, "")
    flash = definition.parameters.get(Effect.FLASH)
    assert flash.frequency == RampSetting.constant(12)
    pink = definition.parameters.get(Effect.PINK_FILTER)
    assert pink.opacity.end_minute is None and pink.opacity.resolved_end(20) == 20
    assert definition.parameters.get(Effect.MASTER).enabled is True


def test_from_dict_unknown_effect():
    with pytest.raises(InvalidSessionDefinitionError):
        SessionDefinition.from_dict({"id": "x", "name": "X", "duration_minutes": 5, "effects": {"lasers": {}}})


def test_describe_timeline(pink_session):
    lines = pink_session.describe_timeline().splitlines()
    assert lines[0] == "00:00 - Settling In"
    assert lines[1] == "10:00 - Pink Awakening"
    assert len(lines) == 5


def test_describe_effects_mentions_delay_and_ramp(pink_session):
    text = pink_session.describe_effects()
    assert "pink_filter: starts ~10min" in text
    assert "opacity 0->15 (10-30min)" in text
    assert "spiral" not in text


@pytest.mark.parametrize("duration", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_duration_rejected(duration):
    ok, error = _definition(duration_minutes=duration, phases=()).validate()
    assert not ok
    assert "duration" in error


def test_non_finite_phase_start_rejected():
    ok, error = _definition(phases=(Phase(0, "A"), Phase(float("nan"), "B"))).validate()
    assert not ok and "finite" in error


@pytest.mark.parametrize("start", [float("nan"), float("inf")])
def test_non_finite_effect_start_rejected(start):
    params = ParameterSet.of(EffectSettings(Effect.PINK_FILTER, enabled=True, start_minute=start))
    ok, error = _definition(parameters=params).validate()
    assert not ok and "pink_filter.start_minute" in error


@pytest.mark.parametrize("gaps", [(float("nan"), 5.0), (2.0, float("inf"))])
def test_non_finite_burst_gaps_rejected(gaps):
    burst = BurstSetting(burst_count=3, per_burst=3, min_gap_minutes=gaps[0], max_gap_minutes=gaps[1])
    params = ParameterSet.of(EffectSettings(Effect.BUBBLES, enabled=True, burst=burst))
    ok, error = _definition(parameters=params).validate()
    assert not ok and "finite" in error


def test_effect_options_from_dict_and_back():
    settings = EffectSettings.from_dict(
        Effect.FLASH,
        {"enabled": True, "frequency": 12, "images": 3, "clickable": False, "audio": True, "bogus": 1},
    )
    assert dict(settings.options) == {"images": 3, "clickable": False, "audio": True}
    data = settings.to_dict()
    assert data["images"] == 3 and data["clickable"] is False
    assert "bogus" not in data
    assert EffectSettings.from_dict(Effect.FLASH, data) == settings


@pytest.mark.parametrize(
    "effect, options, fragment",
    [
        (Effect.FLASH, {"images": 0}, "flash.images"),
        (Effect.FLASH, {"images": 2.5}, "flash.images"),
        (Effect.FLASH, {"clickable": "yes"}, "true or false"),
        (Effect.SUBLIMINAL, {"frames": 11}, "subliminal.frames"),
        (Effect.PINK_FILTER, {"frames": 3}, "no 'frames' option"),
    ],
)
def test_invalid_effect_options_rejected(effect, options, fragment):
    params = ParameterSet.of(EffectSettings(effect, enabled=True, options=options))
    ok, error = _definition(parameters=params).validate()
    assert not ok
    assert fragment in error


def test_describe_effects_lists_options():
    params = ParameterSet.of(EffectSettings(Effect.FLASH, enabled=True, options={"images": 2, "audio": False}))
    text = _definition(parameters=params).describe_effects()
    assert "images 2" in text and "audio false" in text
