"""
Tests for the booking record store adapters.
"""

import asyncio
import json
from typing import List

import pendulum
import pytest
import requests

from sessionbooker.adapters.json_store import JsonFileBookingStore
from sessionbooker.adapters.memory_store import InMemoryBookingStore
from sessionbooker.adapters.rest_store import RestBookingStore
from sessionbooker.domain.exceptions import BookingStoreError, SlotConflictError
from sessionbooker.domain.models import Booking, ContactInfo, Period, Provider, SessionType

MONDAY = pendulum.date(2025, 3, 10)


def _booking(provider: Provider = Provider.ANA, time: str = "09:15", day=MONDAY) -> Booking:
    return Booking.new(
        date=day,
        period=Period.MORNING,
        time=time,
        provider=provider,
        session_type=SessionType.PILATES,
        contact=ContactInfo("Maria", "maria@example.com", "123"),
        timezone="America/Sao_Paulo",
    )


class TestInMemoryBookingStore:
    """Tests for InMemoryBookingStore."""

    def test_create_and_list(self):
        store = InMemoryBookingStore()
        booking = _booking()

        asyncio.run(store.create(booking))

        assert asyncio.run(store.list_bookings()) == [booking]

    def test_duplicate_key_conflicts(self):
        store = InMemoryBookingStore([_booking()])

        with pytest.raises(SlotConflictError):
            asyncio.run(store.create(_booking()))

    def test_list_filters_by_range(self):
        store = InMemoryBookingStore([
            _booking(day=MONDAY),
            _booking(day=pendulum.date(2025, 3, 17)),
            _booking(day=pendulum.date(2025, 3, 24)),
        ])

        bookings = asyncio.run(store.list_bookings(start=MONDAY, end=pendulum.date(2025, 3, 17)))

        assert [b.date for b in bookings] == [MONDAY, pendulum.date(2025, 3, 17)]

    def test_concurrent_creates_on_one_key(self):
        """Exactly one of several concurrent creates succeeds."""
        store = InMemoryBookingStore()

        async def create_all():
            return await asyncio.gather(
                *(store.create(_booking()) for _ in range(4)),
                return_exceptions=True,
            )

        results = asyncio.run(create_all())

        assert sum(isinstance(r, Booking) for r in results) == 1
        assert sum(isinstance(r, SlotConflictError) for r in results) == 3


class TestJsonFileBookingStore:
    """Tests for JsonFileBookingStore."""

    def test_missing_file_is_empty(self, tmp_path):
        store = JsonFileBookingStore(tmp_path / "bookings.json")

        assert asyncio.run(store.list_bookings()) == []

    def test_create_persists_records(self, tmp_path):
        path = tmp_path / "data" / "bookings.json"
        store = JsonFileBookingStore(path)
        booking = _booking()

        asyncio.run(store.create(booking))

        records = json.loads(path.read_text(encoding="utf-8"))
        assert records == [booking.to_record()]

        reloaded = asyncio.run(JsonFileBookingStore(path).list_bookings())
        assert [b.conflict_key for b in reloaded] == [booking.conflict_key]

    def test_duplicate_key_conflicts(self, tmp_path):
        store = JsonFileBookingStore(tmp_path / "bookings.json")
        asyncio.run(store.create(_booking()))

        with pytest.raises(SlotConflictError):
            asyncio.run(store.create(_booking()))

        asyncio.run(store.create(_booking(provider=Provider.CLARA)))
        assert len(asyncio.run(store.list_bookings())) == 2

    def test_two_stores_on_one_file_same_key(self, tmp_path):
        """The booking reported as created is the one kept on disk."""
        path = tmp_path / "bookings.json"
        first, second = JsonFileBookingStore(path), JsonFileBookingStore(path)
        ours, theirs = _booking(), _booking()

        async def create_both():
            return await asyncio.gather(
                first.create(ours), second.create(theirs), return_exceptions=True
            )

        results = asyncio.run(create_both())

        created = [r for r in results if isinstance(r, Booking)]
        assert len(created) == 1
        assert sum(isinstance(r, SlotConflictError) for r in results) == 1
        stored = asyncio.run(JsonFileBookingStore(path).list_bookings())
        assert [b.id for b in stored] == [created[0].id]

    def test_two_stores_on_one_file_distinct_keys(self, tmp_path):
        path = tmp_path / "bookings.json"
        first, second = JsonFileBookingStore(path), JsonFileBookingStore(path)
        ana = _booking(provider=Provider.ANA, time="08:30")
        clara = _booking(provider=Provider.CLARA, time="09:15")

        async def create_both():
            return await asyncio.gather(first.create(ana), second.create(clara))

        asyncio.run(create_both())

        stored = asyncio.run(JsonFileBookingStore(path).list_bookings())
        assert sorted(b.id for b in stored) == sorted([ana.id, clara.id])
        assert [p.name for p in tmp_path.iterdir() if p.suffix == ".tmp"] == []

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bookings.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(BookingStoreError, match="Could not read"):
            asyncio.run(JsonFileBookingStore(path).list_bookings())

    def test_invalid_record(self, tmp_path):
        path = tmp_path / "bookings.json"
        path.write_text(json.dumps([{"day": "2025-03-10"}]), encoding="utf-8")

        with pytest.raises(BookingStoreError, match="Invalid booking record"):
            asyncio.run(JsonFileBookingStore(path).list_bookings())

    def test_root_must_be_array(self, tmp_path):
        path = tmp_path / "bookings.json"
        path.write_text(json.dumps({"bookings": []}), encoding="utf-8")

        with pytest.raises(BookingStoreError, match="JSON array"):
            asyncio.run(JsonFileBookingStore(path).list_bookings())


class FakeResponse:
    def __init__(self, status_code: int, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Records requests and answers with canned responses."""

    def __init__(self, response: FakeResponse = None, error: Exception = None):
        self.response = response
        self.error = error
        self.requests: List[dict] = []

    def _answer(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url, **kwargs):
        return self._answer("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._answer("POST", url, **kwargs)


class TestRestBookingStore:
    """Tests for RestBookingStore."""

    def test_list_sends_range_filters(self):
        booking = _booking()
        session = FakeSession(FakeResponse(200, [booking.to_record()]))
        store = RestBookingStore("https://db.example.org/rest/v1/", api_key="secret", session=session)

        bookings = asyncio.run(store.list_bookings(start=MONDAY, end=MONDAY))

        assert [b.id for b in bookings] == [booking.id]
        sent = session.requests[0]
        assert sent["url"] == "https://db.example.org/rest/v1/bookings"
        assert ("day", "gte.2025-03-10") in sent["params"]
        assert ("day", "lte.2025-03-10") in sent["params"]
        assert sent["headers"]["apikey"] == "secret"
        assert sent["headers"]["Authorization"] == "Bearer secret"

    def test_create_posts_record(self):
        booking = _booking()
        session = FakeSession(FakeResponse(201, [booking.to_record()]))
        store = RestBookingStore("https://db.example.org/rest/v1", session=session)

        created = asyncio.run(store.create(booking))

        assert created.id == booking.id
        sent = session.requests[0]
        assert sent["method"] == "POST"
        assert sent["json"] == booking.to_record()
        assert sent["headers"]["Prefer"] == "return=representation"

    def test_create_without_body_returns_submitted_booking(self):
        booking = _booking()
        store = RestBookingStore("https://db.example.org/rest/v1", session=FakeSession(FakeResponse(201)))

        assert asyncio.run(store.create(booking)) == booking

    def test_conflict_status(self):
        store = RestBookingStore(
            "https://db.example.org/rest/v1",
            session=FakeSession(FakeResponse(409, {"code": "23505"})),
        )

        with pytest.raises(SlotConflictError):
            asyncio.run(store.create(_booking()))

    def test_server_error(self):
        store = RestBookingStore(
            "https://db.example.org/rest/v1",
            session=FakeSession(FakeResponse(500, {"message": "boom"})),
        )

        with pytest.raises(BookingStoreError):
            asyncio.run(store.create(_booking()))

    def test_transport_error(self):
        store = RestBookingStore(
            "https://db.example.org/rest/v1",
            session=FakeSession(error=requests.exceptions.ConnectionError("refused")),
        )

        with pytest.raises(BookingStoreError, match="Failed to fetch"):
            asyncio.run(store.list_bookings())

    def test_unexpected_payload(self):
        store = RestBookingStore(
            "https://db.example.org/rest/v1",
            session=FakeSession(FakeResponse(200, {"rows": []})),
        )

        with pytest.raises(BookingStoreError, match="JSON array"):
            asyncio.run(store.list_bookings())
