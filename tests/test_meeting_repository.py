"""Tests for meeting schemas, the in-memory repository and the status machine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from src.app.meetings.clock import localize, minutes_between, resolve_timezone
from src.app.meetings.errors import (
    InvalidTransitionError,
    MeetingNotFoundError,
    PastScheduleError,
)
from src.app.meetings.repository import can_transition
from src.app.meetings.schemas import MeetingCreate, MeetingStatus, Recurrence

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def _make_create(**overrides) -> MeetingCreate:
    defaults = {
        "participants": ["alice", "bob"],
        "scheduled_time": NOW + timedelta(hours=1),
    }
    defaults.update(overrides)
    return MeetingCreate(**defaults)


class TestMeetingCreate:
    def test_defaults(self):
        data = _make_create()
        assert data.title == "Daily Standup"
        assert data.timezone == "UTC"
        assert data.duration == 30
        assert data.recurrence == Recurrence.NONE
        assert data.virtual_facilitator is False
        assert data.created_by == "system"

    def test_empty_participants_rejected(self):
        with pytest.raises(ValidationError):
            _make_create(participants=[])

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationError):
            _make_create(timezone="Mars/Olympus_Mons")


class TestClockHelpers:
    def test_localize_naive_uses_meeting_timezone(self):
        naive = datetime(2026, 10, 20, 9, 30)
        local = localize(naive, "America/New_York")
        assert local.tzinfo is not None
        # EDT is UTC-4 in October.
        assert local.astimezone(timezone.utc).hour == 13

    def test_localize_keeps_aware_instant(self):
        aware = datetime(2026, 10, 20, 9, 30, tzinfo=timezone.utc)
        assert localize(aware, "Asia/Tokyo") is aware

    def test_resolve_timezone_unknown(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            resolve_timezone("Nowhere/Special")

    def test_minutes_between_rounds(self):
        start = NOW
        assert minutes_between(start, start + timedelta(minutes=14, seconds=40)) == 15
        assert minutes_between(start, start + timedelta(minutes=14, seconds=10)) == 14


class TestStatusMachine:
    @pytest.mark.parametrize(
        ("current", "new", "allowed"),
        [
            (MeetingStatus.SCHEDULED, MeetingStatus.IN_PROGRESS, True),
            (MeetingStatus.SCHEDULED, MeetingStatus.CANCELLED, True),
            (MeetingStatus.IN_PROGRESS, MeetingStatus.COMPLETED, True),
            (MeetingStatus.IN_PROGRESS, MeetingStatus.CANCELLED, True),
            (MeetingStatus.SCHEDULED, MeetingStatus.COMPLETED, False),
            (MeetingStatus.COMPLETED, MeetingStatus.IN_PROGRESS, False),
            (MeetingStatus.CANCELLED, MeetingStatus.SCHEDULED, False),
            (MeetingStatus.IN_PROGRESS, MeetingStatus.SCHEDULED, False),
        ],
    )
    def test_can_transition(self, current, new, allowed):
        assert can_transition(current, new) is allowed


class TestInMemoryMeetingRepository:
    async def test_create_assigns_id_and_scheduled_status(self, repository):
        meeting = await repository.create(_make_create())
        assert meeting.id
        assert meeting.status == MeetingStatus.SCHEDULED
        assert meeting.created_at == NOW
        assert meeting.started_at is None

    async def test_create_rejects_past_one_time(self, repository):
        with pytest.raises(PastScheduleError):
            await repository.create(_make_create(scheduled_time=NOW))
        assert await repository.list_all() == []

    async def test_create_allows_past_anchor_for_daily(self, repository):
        meeting = await repository.create(
            _make_create(scheduled_time=NOW - timedelta(days=2), recurrence=Recurrence.DAILY)
        )
        assert meeting.recurrence == Recurrence.DAILY

    async def test_naive_time_read_in_meeting_timezone(self, repository):
        meeting = await repository.create(
            _make_create(scheduled_time=datetime(2026, 10, 20, 9, 30), timezone="Europe/Berlin")
        )
        # CEST is UTC+2 until the end of October.
        assert meeting.scheduled_time.astimezone(timezone.utc).hour == 7

    async def test_get_unknown(self, repository):
        with pytest.raises(MeetingNotFoundError):
            await repository.get("missing")

    async def test_returned_copies_are_detached(self, repository):
        meeting = await repository.create(_make_create())
        meeting.participants.append("mallory")
        stored = await repository.get(meeting.id)
        assert stored.participants == ["alice", "bob"]

    async def test_list_for_user_matches_participant_or_creator(self, repository):
        first = await repository.create(_make_create(participants=["alice"]))
        second = await repository.create(_make_create(participants=["bob"], created_by="alice"))
        await repository.create(_make_create(participants=["carol"]))

        ids = [m.id for m in await repository.list_for_user("alice")]
        assert ids == [first.id, second.id]

    async def test_transition_stamps_fields(self, repository):
        meeting = await repository.create(_make_create())
        started = NOW + timedelta(hours=1)
        updated = await repository.transition(
            meeting.id, MeetingStatus.IN_PROGRESS, started_at=started
        )
        assert updated.status == MeetingStatus.IN_PROGRESS
        assert updated.started_at == started

    async def test_illegal_transition_leaves_meeting_unchanged(self, repository):
        meeting = await repository.create(_make_create())
        with pytest.raises(InvalidTransitionError) as exc_info:
            await repository.transition(meeting.id, MeetingStatus.COMPLETED)
        assert exc_info.value.current == "scheduled"
        assert exc_info.value.requested == "completed"
        assert (await repository.get(meeting.id)).status == MeetingStatus.SCHEDULED

    async def test_cancelled_is_terminal(self, repository):
        meeting = await repository.create(_make_create())
        await repository.transition(meeting.id, MeetingStatus.CANCELLED)
        with pytest.raises(InvalidTransitionError):
            await repository.transition(meeting.id, MeetingStatus.IN_PROGRESS)

    async def test_transition_rejects_unknown_fields(self, repository):
        meeting = await repository.create(_make_create())
        with pytest.raises(TypeError):
            await repository.transition(meeting.id, MeetingStatus.CANCELLED, title="x")
