"""
Candidate time slot generation.

Pure domain logic: the generator never looks at bookings. Filtering by
availability is done by ``AvailabilityResolver``.
"""

import logging
from datetime import time
from typing import Dict, List, Mapping

from .models import Period, SessionType, WeekdayRule

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_STARTS: Dict[Period, time] = {
    Period.MORNING: time(8, 30),
    Period.AFTERNOON: time(14, 30),
}


class SlotGenerator:
    """
    Produces the ordered candidate times for a period.

    Algorithm:
    1. If the weekday rule pins the session type to a fixed time, return that
       time when the period matches and nothing otherwise
    2. Else start at the period's start time
    3. Emit ``slot_count`` times, advancing by ``step_minutes`` each time
    """

    def __init__(
        self,
        period_starts: Mapping[Period, time] = DEFAULT_PERIOD_STARTS,
        slot_count: int = 4,
        step_minutes: int = 45,
    ):
        if slot_count <= 0:
            raise ValueError("slot_count must be greater than zero")
        if step_minutes <= 0:
            raise ValueError("step_minutes must be greater than zero")
        missing = [p.value for p in Period if p not in period_starts]
        if missing:
            raise ValueError(f"No start time configured for periods {missing}")

        self.period_starts = dict(period_starts)
        self.slot_count = slot_count
        self.step_minutes = step_minutes

    def check_rule(self, rule: WeekdayRule) -> None:
        """
        Ensure a rule's fixed time is one of the times its period would offer.

        Raises:
            ValueError: If the fixed time is off the configured slot grid
        """
        fixed = rule.fixed_time
        if fixed is None:
            return

        grid = self._grid(fixed.period)
        if fixed.time not in grid:
            raise ValueError(
                f"Fixed time {fixed.time} for {fixed.session_type.value} on weekday "
                f"{rule.weekday} is not on the {fixed.period.value} slot grid {grid}"
            )

    def generate(
        self,
        period: Period,
        rule: WeekdayRule,
        session_type: SessionType,
    ) -> List[str]:
        """
        Generate candidate times for a period.

        Args:
            period: Morning or afternoon
            rule: Rule of the weekday being booked
            session_type: Session type being booked

        Returns:
            Ordered list of zero-padded HH:MM strings
        """
        fixed = rule.fixed_time_for(session_type)
        if fixed is not None:
            if fixed.period != period:
                return []
            return [fixed.time]

        slots = self._grid(period)
        logger.debug("Generated %d slots for %s: %s", len(slots), period.value, slots)
        return slots

    def _grid(self, period: Period) -> List[str]:
        start = self.period_starts[period]
        hour, minute = start.hour, start.minute

        slots: List[str] = []
        for _ in range(self.slot_count):
            slots.append(f"{hour:02d}:{minute:02d}")
            minute += self.step_minutes
            hour += minute // 60
            minute %= 60
        return slots
