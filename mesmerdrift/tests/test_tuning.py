from mesmerdrift.session import EngineTuning


def test_defaults_are_valid():
    tuning = EngineTuning()
    assert tuning.validate() == (True, "")
    assert tuning.tick_interval_s == 1.0
    assert tuning.jitter_minutes == 3.0
    assert (tuning.first_burst_min, tuning.first_burst_max) == (2.0, 5.0)
    assert (tuning.burst_duration_min, tuning.burst_duration_max) == (1.0, 2.0)
    assert tuning.burst_tail_margin == 2.0


def test_validate_rejects_bad_windows():
    assert EngineTuning(tick_interval_s=0).validate()[0] is False
    assert EngineTuning(jitter_minutes=-1).validate()[0] is False
    assert EngineTuning(first_burst_min=6).validate()[0] is False
    assert EngineTuning(burst_duration_min=0).validate()[0] is False
    ok, error = EngineTuning(burst_tail_margin=-0.5).validate()
    assert not ok and "burst_tail_margin" in error


def test_from_env_overrides():
    tuning = EngineTuning.from_env({
        "MESMERDRIFT_JITTER_MINUTES": "0",
        "MESMERDRIFT_TICK_INTERVAL_S": "0.25",
        "MESMERDRIFT_BURST_TAIL_MARGIN": " ",
    })
    assert tuning.jitter_minutes == 0.0
    assert tuning.tick_interval_s == 0.25
    assert tuning.burst_tail_margin == 2.0


def test_from_env_ignores_non_numbers():
    tuning = EngineTuning.from_env({"MESMERDRIFT_JITTER_MINUTES": "lots", "MESMERDRIFT_FIRST_BURST_MAX": "6"})
    assert tuning.jitter_minutes == 3.0
    assert tuning.first_burst_max == 6.0


def test_from_env_invalid_combination_falls_back_to_defaults():
    tuning = EngineTuning.from_env({"MESMERDRIFT_FIRST_BURST_MIN": "9"})
    assert tuning == EngineTuning()
