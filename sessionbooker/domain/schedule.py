"""
Fixed weekly schedule: which periods and session types each weekday offers.

The period narrowing is a declarative table keyed by (weekday, session type).
Weekdays without an entry offer every period of their rule to every session
type.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from pendulum import Date

from .models import FixedTimeRule, Period, SessionType, WeekdayRule

PeriodNarrowing = Mapping[Tuple[int, SessionType], Tuple[Period, ...]]


DEFAULT_WEEKDAY_RULES: Tuple[WeekdayRule, ...] = (
    WeekdayRule(
        weekday=0,
        periods=(Period.MORNING,),
        session_types=(SessionType.PILATES,),
    ),
    WeekdayRule(
        weekday=1,
        periods=(Period.AFTERNOON,),
        session_types=(SessionType.MASSAGEM,),
    ),
    WeekdayRule(
        weekday=2,
        periods=(Period.MORNING,),
        session_types=(SessionType.ACUPUNTURA, SessionType.ESCALDA_PES),
        fixed_time=FixedTimeRule(
            session_type=SessionType.ESCALDA_PES,
            period=Period.MORNING,
            time="10:00",
        ),
    ),
    WeekdayRule(
        weekday=3,
        periods=(Period.MORNING, Period.AFTERNOON),
        session_types=(SessionType.PILATES, SessionType.MASSAGEM),
    ),
)

DEFAULT_PERIOD_NARROWING: Dict[Tuple[int, SessionType], Tuple[Period, ...]] = {
    (3, SessionType.PILATES): (Period.MORNING,),
    (3, SessionType.MASSAGEM): (Period.AFTERNOON,),
}


class WeeklyScheduleTemplate:
    """
    Static lookup from weekday to its WeekdayRule.

    A weekday without a rule is closed; that is a valid state, not an error.
    """

    def __init__(
        self,
        rules: Iterable[WeekdayRule] = DEFAULT_WEEKDAY_RULES,
        narrowing: PeriodNarrowing = DEFAULT_PERIOD_NARROWING,
    ):
        self._rules: Dict[int, WeekdayRule] = {}
        for rule in rules:
            if rule.weekday in self._rules:
                raise ValueError(f"Duplicate rule for weekday {rule.weekday}")
            self._rules[rule.weekday] = rule

        for (weekday, session_type), periods in narrowing.items():
            rule = self._rules.get(weekday)
            if rule is None:
                raise ValueError(f"Period narrowing for closed weekday {weekday}")
            if session_type not in rule.session_types:
                raise ValueError(
                    f"Period narrowing for {session_type.value}, "
                    f"which weekday {weekday} does not offer"
                )
            unknown = [p.value for p in periods if p not in rule.periods]
            if unknown:
                raise ValueError(
                    f"Period narrowing for weekday {weekday} uses periods {unknown} "
                    f"outside the rule"
                )
        self._narrowing = dict(narrowing)

    def rule_for(self, weekday: int) -> Optional[WeekdayRule]:
        return self._rules.get(weekday)

    def rule_for_date(self, day: Date) -> Optional[WeekdayRule]:
        return self._rules.get(day.weekday())

    def is_open(self, weekday: int) -> bool:
        return weekday in self._rules

    def open_weekdays(self) -> List[int]:
        return sorted(self._rules)

    def rules(self) -> List[WeekdayRule]:
        return [self._rules[weekday] for weekday in self.open_weekdays()]

    def periods_for(self, weekday: int, session_type: SessionType) -> List[Period]:
        """
        Periods in which a session type may be booked on a weekday.

        Returns the rule's periods (in rule order) narrowed by the
        (weekday, session type) table; empty if the type is not offered.
        """
        rule = self._rules.get(weekday)
        if rule is None or session_type not in rule.session_types:
            return []

        allowed = self._narrowing.get((weekday, session_type), rule.periods)
        return [period for period in rule.periods if period in allowed]

    def session_types_for(self, weekday: int) -> List[SessionType]:
        """Session types that keep at least one period after narrowing."""
        rule = self._rules.get(weekday)
        if rule is None:
            return []
        return [
            session_type for session_type in rule.session_types
            if self.periods_for(weekday, session_type)
        ]

    def upcoming_dates(self, after: Date, days: int = 14) -> List[Date]:
        """
        Open dates strictly after ``after`` within the next ``days`` days.
        """
        dates: List[Date] = []
        for offset in range(1, days + 1):
            current = after.add(days=offset)
            if self.is_open(current.weekday()):
                dates.append(current)
        return dates
