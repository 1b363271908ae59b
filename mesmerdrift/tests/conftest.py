"""pytest configuration file."""

import pytest, os, logging

from mesmerdrift.session import (
    EffectSettings,
    Effect,
    ParameterSet,
    Phase,
    RampSetting,
    SessionDefinition,
)

pytest_plugins = [
    "pytest_asyncio",
]

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (may take several seconds)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "qt: marks tests that need a Qt application instance"
    )

@pytest.fixture(autouse=True, scope="session")
def _isolate_user_data(tmp_path_factory):
    # Keep library seeding and log files out of the real home directory
    home = tmp_path_factory.mktemp("mesmerdrift_home")
    os.environ["MESMERDRIFT_HOME"] = str(home)
    logging.getLogger("asyncio").setLevel(logging.ERROR)
    yield home


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance_minutes(self, minutes: float) -> float:
        self.now += minutes * 60.0
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pink_session():
    """30-minute session: pink filter delayed to minute 10, ramp 0 -> 15 over [10, 30]."""
    return SessionDefinition(
        id="pink_test",
        name="Pink Test",
        duration_minutes=30,
        phases=(
            Phase(0, "Settling In"),
            Phase(10, "Pink Awakening"),
            Phase(15, "Drifting"),
            Phase(25, "Deep Pink"),
            Phase(30, "Complete"),
        ),
        parameters=ParameterSet.of(
            EffectSettings(
                Effect.PINK_FILTER,
                enabled=True,
                start_minute=10,
                opacity=RampSetting(0, 15, start_minute=10, end_minute=30),
            ),
            EffectSettings(Effect.FLASH, enabled=True, frequency=RampSetting.constant(12), opacity=RampSetting.constant(30)),
            EffectSettings(Effect.SPIRAL, enabled=False),
        ),
        bonus_xp=100,
    )
