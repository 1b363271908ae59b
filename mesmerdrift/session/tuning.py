"""Engine timing constants.

Defaults: 1 s tick, ±3 min jitter, first
burst after 2–5 min, bursts of 1–2 min, no burst in the last 2 min. Each
value can be overridden from the environment for experiments, e.g.
``MESMERDRIFT_JITTER_MINUTES=0`` for fully deterministic delayed starts.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

_ENV_PREFIX = "MESMERDRIFT_"


@dataclass(frozen=True)
class EngineTuning:
    """Timing knobs for the session controller (all times in minutes except the tick)."""
    tick_interval_s: float = 1.0
    jitter_minutes: float = 3.0
    first_burst_min: float = 2.0
    first_burst_max: float = 5.0
    burst_duration_min: float = 1.0
    burst_duration_max: float = 2.0
    burst_tail_margin: float = 2.0

    def validate(self) -> tuple[bool, str]:
        """
        Validate tuning constraints.

        Returns:
            (is_valid, error_message)
        """
        if self.tick_interval_s <= 0:
            return False, f"tick_interval_s must be positive, got {self.tick_interval_s}"
        if self.jitter_minutes < 0:
            return False, f"jitter_minutes must be non-negative, got {self.jitter_minutes}"
        if self.first_burst_min < 0 or self.first_burst_min > self.first_burst_max:
            return False, (
                f"first burst window invalid: [{self.first_burst_min}, {self.first_burst_max}]"
            )
        if self.burst_duration_min <= 0 or self.burst_duration_min > self.burst_duration_max:
            return False, (
                f"burst duration window invalid: [{self.burst_duration_min}, {self.burst_duration_max}]"
            )
        if self.burst_tail_margin < 0:
            return False, f"burst_tail_margin must be non-negative, got {self.burst_tail_margin}"
        return True, ""

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineTuning":
        """Build tuning from ``MESMERDRIFT_<FIELD>`` variables; bad values are ignored."""
        env = os.environ if environ is None else environ
        overrides: dict[str, float] = {}
        for f in fields(cls):
            raw = env.get(_ENV_PREFIX + f.name.upper())
            if raw is None or not raw.strip():
                continue
            try:
                overrides[f.name] = float(raw)
            except ValueError:
                logger.warning(f"[tuning] Ignoring {_ENV_PREFIX}{f.name.upper()}={raw!r} (not a number)")
        tuning = replace(cls(), **overrides)
        ok, error = tuning.validate()
        if not ok:
            logger.warning(f"[tuning] Environment overrides rejected ({error}); using defaults")
            return cls()
        return tuning
