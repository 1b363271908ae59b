"""Tests for phase resolution."""

import random

from mesmerdrift.session import Phase, resolve_phase


PHASES = (
    Phase(0, "Settling In"),
    Phase(10, "Pink Awakening"),
    Phase(15, "Drifting"),
    Phase(25, "Deep Pink"),
    Phase(30, "Complete"),
)


def test_resolve_phase_boundaries():
    assert resolve_phase(PHASES, 0) == 0
    assert resolve_phase(PHASES, 9.99) == 0
    assert resolve_phase(PHASES, 10) == 1
    assert resolve_phase(PHASES, 14.5) == 1
    assert resolve_phase(PHASES, 15) == 2
    assert resolve_phase(PHASES, 29.9) == 3
    assert resolve_phase(PHASES, 30) == 4
    assert resolve_phase(PHASES, 120) == 4


def test_resolve_phase_empty_table():
    assert resolve_phase((), 12) == 0


def test_resolve_phase_before_first_nonzero_start():
    phases = (Phase(5, "Late"), Phase(8, "Later"))
    assert resolve_phase(phases, 1) == 0


def test_resolve_phase_bracket_property():
    rng = random.Random(7)
    for _ in range(50):
        starts = sorted({0.0, *(round(rng.uniform(0.5, 60), 2) for _ in range(rng.randint(0, 6)))})
        phases = tuple(Phase(s, f"p{i}") for i, s in enumerate(starts))
        for _ in range(20):
            t = rng.uniform(0, 70)
            i = resolve_phase(phases, t)
            assert phases[i].start_minute <= t
            if i + 1 < len(phases):
                assert t < phases[i + 1].start_minute
