"""
Multi-step booking wizard.

Flow: date -> session type -> provider -> period/time -> contact info.

Every step is its own immutable state class carrying only the selections made
before it, so navigating back can never leave a stale later selection behind.
Invalid input raises ``SelectionError`` and leaves the current step untouched.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import date as date_type
from datetime import datetime
from typing import Callable, ClassVar, Optional, Tuple, Type, TypeVar, Union

import pendulum
from pendulum import Date

from ..domain.exceptions import (
    BookingStoreError,
    InvalidStepError,
    SelectionError,
    SlotConflictError,
    SubmissionInProgressError,
)
from ..domain.models import (
    WEEKDAY_NAMES,
    Booking,
    ContactInfo,
    Period,
    Provider,
    SessionType,
    TimeSlot,
    WeekdayRule,
)
from .booking_service import BookingService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectDate:
    step: ClassVar[int] = 1


@dataclass(frozen=True)
class SelectSessionType:
    step: ClassVar[int] = 2
    day: Date
    rule: WeekdayRule
    options: Tuple[SessionType, ...]


@dataclass(frozen=True)
class SelectProvider:
    step: ClassVar[int] = 3
    day: Date
    rule: WeekdayRule
    session_type: SessionType
    session_type_auto: bool = False  # only one type offered, step 2 was skipped


@dataclass(frozen=True)
class SelectPeriodAndTime:
    step: ClassVar[int] = 4
    day: Date
    rule: WeekdayRule
    session_type: SessionType
    provider: Provider
    periods: Tuple[Period, ...]
    period: Optional[Period] = None
    slots: Tuple[TimeSlot, ...] = ()
    session_type_auto: bool = False


@dataclass(frozen=True)
class EnterContactInfo:
    step: ClassVar[int] = 5
    day: Date
    rule: WeekdayRule
    session_type: SessionType
    provider: Provider
    period: Period
    time: str
    contact: ContactInfo = ContactInfo()
    session_type_auto: bool = False


@dataclass(frozen=True)
class Confirmed:
    """Acknowledgement shown until the wizard resets itself."""
    step: ClassVar[int] = 6
    booking: Booking


WizardState = Union[
    SelectDate,
    SelectSessionType,
    SelectProvider,
    SelectPeriodAndTime,
    EnterContactInfo,
    Confirmed,
]

StateT = TypeVar("StateT")


def as_date(value) -> Date:
    """Normalise a date or datetime to a pendulum Date."""
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date_type):
        raise SelectionError(f"Not a date: {value!r}", field="date")
    return pendulum.date(value.year, value.month, value.day)


class BookingWizard:
    """
    State machine driving one client through a booking.

    The wizard is single-threaded and event driven: each public method is one
    user action. Store access is awaited; while a fetch is pending the current
    state stays readable, and a result arriving for a step the user already
    left is discarded.
    """

    def __init__(
        self,
        service: BookingService,
        *,
        timezone: str = "UTC",
        today: Optional[Callable[[], Date]] = None,
        current_user_email: Optional[str] = None,
        confirmation_delay: float = 3.0,
    ) -> None:
        self._service = service
        self._timezone = timezone
        self._today = today or (lambda: pendulum.today(timezone).date())
        self.current_user_email = current_user_email
        self.confirmation_delay = confirmation_delay

        self._state: WizardState = SelectDate()
        self._submitting = False
        self._reset_handle: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    # Step 1

    def select_date(self, day) -> WizardState:
        """
        Choose the calendar date.

        Skips the session type step when the day offers a single session type.

        Raises:
            SelectionError: If the date is not after today or the weekday is closed
        """
        self._expect(SelectDate, "select a date")
        day = as_date(day)

        if day <= self._today():
            raise SelectionError(f"{day} is not a future date", field="date")

        rule = self._service.template.rule_for_date(day)
        if rule is None:
            raise SelectionError(
                f"No sessions on {WEEKDAY_NAMES[day.weekday()]} ({day})",
                field="date",
            )

        options = tuple(self._service.template.session_types_for(day.weekday()))
        if not options:
            raise SelectionError(f"No session types can be booked on {day}", field="date")

        if len(options) == 1:
            self._state = SelectProvider(
                day=day,
                rule=rule,
                session_type=options[0],
                session_type_auto=True,
            )
        else:
            self._state = SelectSessionType(day=day, rule=rule, options=options)

        logger.debug("Date %s selected, now at step %d", day, self._state.step)
        return self._state

    # Step 2

    def select_session_type(self, session_type: SessionType) -> WizardState:
        state = self._expect(SelectSessionType, "select a session type")

        if session_type not in state.options:
            raise SelectionError(
                f"{session_type.label} is not offered on {state.day}",
                field="session_type",
            )

        self._state = SelectProvider(day=state.day, rule=state.rule, session_type=session_type)
        return self._state

    # Step 3

    def select_provider(self, provider: Provider) -> WizardState:
        state = self._expect(SelectProvider, "select a provider")

        if provider not in self._service.resolver.providers:
            raise SelectionError(f"Unknown provider: {provider}", field="provider")

        self._state = self._period_state(
            state.day,
            state.rule,
            state.session_type,
            provider,
            state.session_type_auto,
        )
        return self._state

    # Step 4

    async def select_period(self, period: Period) -> WizardState:
        """
        Choose a period and load its slots with current availability.

        Raises:
            SelectionError: If the period is not offered for the session type
            BookingStoreError: If bookings cannot be fetched
        """
        state = self._expect(SelectPeriodAndTime, "select a period")

        if period not in state.periods:
            raise SelectionError(
                f"{state.session_type.label} is not offered in the {period.label} "
                f"on {state.day}",
                field="period",
            )

        return await self._load_slots(state, period)

    async def refresh_slots(self) -> WizardState:
        """Recompute availability for the selected period."""
        state = self._expect(SelectPeriodAndTime, "refresh slots")
        if state.period is None:
            raise SelectionError("Select a period first", field="period")
        return await self._load_slots(state, state.period)

    def select_time(self, time: str) -> WizardState:
        """
        Choose a time among the loaded slots.

        Raises:
            SelectionError: If the time is unknown or taken for the chosen provider
        """
        state = self._expect(SelectPeriodAndTime, "select a time")

        if state.period is None:
            raise SelectionError("Select a period first", field="period")

        slot = next((s for s in state.slots if s.time == time), None)
        if slot is None:
            raise SelectionError(f"{time} is not a slot of the {state.period.label}", field="time")

        if not slot.is_available_for(state.provider):
            raise SelectionError(
                f"{time} is not available with {state.provider.label}",
                field="time",
            )

        self._state = EnterContactInfo(
            day=state.day,
            rule=state.rule,
            session_type=state.session_type,
            provider=state.provider,
            period=state.period,
            time=slot.time,
            contact=ContactInfo(email=self.current_user_email or ""),
            session_type_auto=state.session_type_auto,
        )
        return self._state

    # Step 5

    def update_contact(
        self,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> WizardState:
        """Store a partial contact draft without submitting."""
        if self._submitting:
            raise SubmissionInProgressError("Cannot edit contact info while a booking is being submitted")

        state = self._expect(EnterContactInfo, "edit contact info")
        self._state = replace(state, contact=self._merge_contact(state.contact, name, email, phone))
        return self._state

    async def submit(
        self,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Booking:
        """
        Submit the booking.

        Returns:
            The created Booking; the wizard moves to ``Confirmed`` and resets
            itself after ``confirmation_delay`` seconds

        Raises:
            SubmissionInProgressError: If a submission is already pending
            SelectionError: If a required field is empty
            SlotConflictError: If the slot was taken meanwhile; the wizard is
                back at slot selection with refreshed availability
            BookingStoreError: If the store failed; contact info is kept
        """
        if self._submitting:
            raise SubmissionInProgressError("A booking is already being submitted")

        state = self._expect(EnterContactInfo, "submit")
        contact = self._merge_contact(state.contact, name, email, phone)
        state = replace(state, contact=contact)
        self._state = state

        missing = contact.missing_fields()
        if missing:
            raise SelectionError(f"Required fields missing: {', '.join(missing)}", field=missing[0])
        self._check_selections(state)

        booking = Booking.new(
            date=state.day,
            period=state.period,
            time=state.time,
            provider=state.provider,
            session_type=state.session_type,
            contact=contact.normalized(),
            timezone=self._timezone,
        )

        self._submitting = True
        try:
            created = await self._service.book(booking)
        except SlotConflictError:
            self._submitting = False
            logger.warning("Slot %s was taken before submission", booking.conflict_key)
            await self._return_to_slot_selection(state)
            raise
        except BookingStoreError:
            logger.warning("Booking submission failed, contact info kept", exc_info=True)
            self._state = state
            raise
        finally:
            self._submitting = False

        self._state = Confirmed(booking=created)
        self._schedule_reset()
        return created

    # Navigation

    def back(self) -> WizardState:
        """
        Return to the previous step, clearing the selections made from it on.
        """
        if self._submitting:
            raise SubmissionInProgressError("Cannot navigate while a booking is being submitted")

        state = self._state
        if isinstance(state, SelectDate):
            return state
        if isinstance(state, Confirmed):
            return self.reset()

        if isinstance(state, SelectSessionType):
            self._state = SelectDate()
        elif isinstance(state, SelectProvider):
            if state.session_type_auto:
                self._state = SelectDate()
            else:
                self._state = self._session_type_state(state.day, state.rule)
        elif isinstance(state, SelectPeriodAndTime):
            self._state = SelectProvider(
                day=state.day,
                rule=state.rule,
                session_type=state.session_type,
                session_type_auto=state.session_type_auto,
            )
        elif isinstance(state, EnterContactInfo):
            self._state = self._period_state(
                state.day,
                state.rule,
                state.session_type,
                state.provider,
                state.session_type_auto,
            )

        logger.debug("Went back to step %d", self._state.step)
        return self._state

    def reset(self) -> WizardState:
        """Discard every selection. Nothing is persisted."""
        if self._submitting:
            raise SubmissionInProgressError("Cannot reset while a booking is being submitted")
        self._cancel_scheduled_reset()
        self._state = SelectDate()
        return self._state

    # Helpers

    def _expect(self, state_type: Type[StateT], action: str) -> StateT:
        if not isinstance(self._state, state_type):
            raise InvalidStepError(
                f"Cannot {action} at step {self._state.step} ({type(self._state).__name__})"
            )
        return self._state

    def _session_type_state(self, day: Date, rule: WeekdayRule) -> SelectSessionType:
        options = tuple(self._service.template.session_types_for(day.weekday()))
        return SelectSessionType(day=day, rule=rule, options=options)

    def _period_state(
        self,
        day: Date,
        rule: WeekdayRule,
        session_type: SessionType,
        provider: Provider,
        session_type_auto: bool,
    ) -> SelectPeriodAndTime:
        periods = tuple(self._service.template.periods_for(day.weekday(), session_type))
        return SelectPeriodAndTime(
            day=day,
            rule=rule,
            session_type=session_type,
            provider=provider,
            periods=periods,
            session_type_auto=session_type_auto,
        )

    async def _load_slots(self, state: SelectPeriodAndTime, period: Period) -> WizardState:
        pending = replace(state, period=period, slots=())
        self._state = pending

        slots = await self._service.find_slots(
            day=state.day,
            period=period,
            session_type=state.session_type,
        )

        if self._state is not pending:
            logger.debug("Discarding slots for %s %s, step was left", state.day, period.value)
            return self._state

        self._state = replace(pending, slots=tuple(slots))
        return self._state

    async def _return_to_slot_selection(self, state: EnterContactInfo) -> None:
        target = self._period_state(
            state.day,
            state.rule,
            state.session_type,
            state.provider,
            state.session_type_auto,
        )
        self._state = target
        try:
            await self._load_slots(target, state.period)
        except BookingStoreError:
            logger.warning("Could not refresh slots after a conflict", exc_info=True)

    def _check_selections(self, state: EnterContactInfo) -> None:
        selections = {
            "date": state.day,
            "session_type": state.session_type,
            "provider": state.provider,
            "period": state.period,
            "time": state.time,
        }
        for field_name, value in selections.items():
            if value is None:
                raise SelectionError(f"Missing selection: {field_name}", field=field_name)

        allowed = self._service.template.periods_for(state.day.weekday(), state.session_type)
        if state.period not in allowed:
            raise SelectionError(
                f"{state.session_type.label} is not offered in the {state.period.label}",
                field="period",
            )

    @staticmethod
    def _merge_contact(
        contact: ContactInfo,
        name: Optional[str],
        email: Optional[str],
        phone: Optional[str],
    ) -> ContactInfo:
        return ContactInfo(
            name=contact.name if name is None else name,
            email=contact.email if email is None else email,
            phone=contact.phone if phone is None else phone,
        )

    def _schedule_reset(self) -> None:
        self._cancel_scheduled_reset()
        loop = asyncio.get_running_loop()
        self._reset_handle = loop.call_later(self.confirmation_delay, self._reset_after_confirmation)

    def _reset_after_confirmation(self) -> None:
        self._reset_handle = None
        if isinstance(self._state, Confirmed):
            self._state = SelectDate()

    def _cancel_scheduled_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
