"""
Domain models for the weekly schedule, time slots and bookings.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, NamedTuple, Optional, Tuple

import pendulum
from pendulum import Date, DateTime


class Period(str, Enum):
    """Coarse half-day window in which slots are generated."""
    MORNING = "morning"
    AFTERNOON = "afternoon"

    @property
    def label(self) -> str:
        return _PERIOD_LABELS[self]


_PERIOD_LABELS = {
    Period.MORNING: "Manhã",
    Period.AFTERNOON: "Tarde",
}


class SessionType(str, Enum):
    """Category of service being booked."""
    ESCALDA_PES = "escalda-pes"
    PILATES = "pilates"
    MASSAGEM = "massagem"
    ACUPUNTURA = "acupuntura"

    @property
    def label(self) -> str:
        return _SESSION_TYPE_LABELS[self]


_SESSION_TYPE_LABELS = {
    SessionType.ESCALDA_PES: "Escalda-Pés",
    SessionType.PILATES: "Pilates",
    SessionType.MASSAGEM: "Massagem",
    SessionType.ACUPUNTURA: "Acupuntura",
}


class Provider(str, Enum):
    """The two professionals who can be assigned to a booking."""
    ANA = "ana"
    CLARA = "clara"

    @property
    def label(self) -> str:
        return _PROVIDER_LABELS[self]


_PROVIDER_LABELS = {
    Provider.ANA: "Ana",
    Provider.CLARA: "Clara",
}

WEEKDAY_NAMES = {
    0: "Segunda-feira",
    1: "Terça-feira",
    2: "Quarta-feira",
    3: "Quinta-feira",
    4: "Sexta-feira",
    5: "Sábado",
    6: "Domingo",
}


@dataclass(frozen=True)
class FixedTimeRule:
    """A session type that is only offered at one time of one period."""
    session_type: SessionType
    period: Period
    time: str  # HH:MM


@dataclass(frozen=True)
class WeekdayRule:
    """
    Periods and session types offered on one weekday.

    Invariant: periods and session types are never empty.
    """
    weekday: int  # 0=Monday, 6=Sunday
    periods: Tuple[Period, ...]
    session_types: Tuple[SessionType, ...]
    fixed_time: Optional[FixedTimeRule] = None

    def __post_init__(self):
        if not 0 <= self.weekday <= 6:
            raise ValueError(f"Weekday must be between 0 and 6, got {self.weekday}")
        if not self.periods:
            raise ValueError(f"Weekday {self.weekday} must offer at least one period")
        if not self.session_types:
            raise ValueError(f"Weekday {self.weekday} must offer at least one session type")
        if self.fixed_time is not None:
            if self.fixed_time.session_type not in self.session_types:
                raise ValueError(
                    f"Fixed time for {self.fixed_time.session_type.value} "
                    f"but weekday {self.weekday} does not offer it"
                )
            if self.fixed_time.period not in self.periods:
                raise ValueError(
                    f"Fixed time in {self.fixed_time.period.value} "
                    f"but weekday {self.weekday} does not open then"
                )

    @property
    def day_name(self) -> str:
        return WEEKDAY_NAMES[self.weekday]

    def fixed_time_for(self, session_type: SessionType) -> Optional[FixedTimeRule]:
        """Return the fixed-time restriction for a session type, if any."""
        if self.fixed_time and self.fixed_time.session_type == session_type:
            return self.fixed_time
        return None


@dataclass(frozen=True)
class TimeSlot:
    """
    A bookable clock time together with the providers still free at it.
    """
    time: str  # HH:MM
    available_providers: FrozenSet[Provider] = field(default_factory=frozenset)

    def is_available_for(self, provider: Provider) -> bool:
        return provider in self.available_providers

    @property
    def is_exhausted(self) -> bool:
        return not self.available_providers

    def format_display(self) -> str:
        if self.is_exhausted:
            return f"{self.time} (esgotado)"
        names = ", ".join(p.label for p in sorted(self.available_providers, key=lambda p: p.label))
        return f"{self.time} ({names})"


class ConflictKey(NamedTuple):
    """Tuple that must be unique across all bookings."""
    date: Date
    period: Period
    time: str
    provider: Provider


@dataclass(frozen=True)
class ContactInfo:
    """Client contact data collected in the last wizard step."""
    name: str = ""
    email: str = ""
    phone: str = ""

    def missing_fields(self) -> List[str]:
        """Names of required fields that are empty."""
        return [
            name for name in ("name", "email", "phone")
            if not getattr(self, name).strip()
        ]

    def normalized(self) -> "ContactInfo":
        return ContactInfo(
            name=self.name.strip(),
            email=self.email.strip(),
            phone=self.phone.strip(),
        )


@dataclass(frozen=True)
class Booking:
    """
    A confirmed reservation. Created once, never updated by the engine.
    """
    date: Date
    period: Period
    time: str
    provider: Provider
    session_type: SessionType
    client_name: str
    client_email: str
    client_phone: str
    created_at: DateTime
    id: str

    @classmethod
    def new(
        cls,
        *,
        date: Date,
        period: Period,
        time: str,
        provider: Provider,
        session_type: SessionType,
        contact: ContactInfo,
        timezone: str = "UTC",
    ) -> "Booking":
        """Build a fresh booking with a generated id and creation timestamp."""
        return cls(
            date=date,
            period=period,
            time=time,
            provider=provider,
            session_type=session_type,
            client_name=contact.name,
            client_email=contact.email,
            client_phone=contact.phone,
            created_at=pendulum.now(timezone),
            id=str(uuid.uuid4()),
        )

    @property
    def conflict_key(self) -> ConflictKey:
        return ConflictKey(self.date, self.period, self.time, self.provider)

    def to_record(self) -> Dict[str, Any]:
        """Flat record using the column names of the bookings table."""
        return {
            "id": self.id,
            "day": self.date.isoformat(),
            "period": self.period.value,
            "time": self.time,
            "session_type": self.session_type.value,
            "professional": self.provider.value,
            "user_name": self.client_name,
            "user_email": self.client_email,
            "user_phone": self.client_phone,
            "created_at": self.created_at.to_iso8601_string(),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Booking":
        """
        Parse a record produced by ``to_record`` (or returned by the REST table).

        Raises:
            ValueError: If a field is missing or has an unknown value
        """
        try:
            return cls(
                date=pendulum.from_format(record["day"], "YYYY-MM-DD").date(),
                period=Period(record["period"]),
                time=record["time"][:5],
                provider=Provider(record["professional"]),
                session_type=SessionType(record["session_type"]),
                client_name=record["user_name"],
                client_email=record["user_email"],
                client_phone=record["user_phone"],
                created_at=pendulum.parse(record["created_at"]),
                id=str(record["id"]),
            )
        except KeyError as exc:
            raise ValueError(f"Booking record is missing field {exc}") from exc

    def format_display(self) -> str:
        """
        Format the booking for display.
        Format: Dia da semana, DD/MM/YYYY | Período • HH:MM | Sessão com Profissional
        """
        weekday = WEEKDAY_NAMES[self.date.weekday()]
        date_str = self.date.strftime("%d/%m/%Y")
        return (
            f"{weekday}, {date_str} | {self.period.label} • {self.time} | "
            f"{self.session_type.label} com {self.provider.label}"
        )
