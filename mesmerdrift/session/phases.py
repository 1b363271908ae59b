"""Phase lookup for a session timeline."""

from __future__ import annotations

from bisect import bisect_right
from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from .definition import Phase


def resolve_phase(phases: Sequence["Phase"], elapsed_minutes: float) -> int:
    """Return the index of the phase active at *elapsed_minutes*.

    The active phase is the last one whose ``start_minute`` has been reached.
    Times before every non-zero start resolve to index 0, as does an empty
    table.
    """
    if not phases:
        return 0
    starts = [p.start_minute for p in phases]
    index = bisect_right(starts, elapsed_minutes) - 1
    return max(0, index)
