from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from venture_connect.domain.enums import MeetingStatus, MeetingType
from venture_connect.storage.db import db_session
from venture_connect.storage.models import Meeting
from venture_connect.storage.repositories import MeetingRepository

T0 = datetime(2098, 6, 1, 12, 0, tzinfo=UTC)


def _meeting(meeting_id: str, requester_id: str, status: MeetingStatus) -> Meeting:
    return Meeting(
        id=meeting_id,
        post_id="post-bob",
        requester_id=requester_id,
        post_owner_id="bob",
        scheduled_date=date(2099, 1, 1),
        scheduled_time="10:00",
        meeting_type=MeetingType.virtual,
        message="hi",
        status=status,
        created_at=T0,
        updated_at=T0,
    )


@pytest.fixture()
def owners(seed):
    seed.user("alice")
    seed.user("bob")
    seed.user("carol")
    seed.post("post-bob", author_id="bob")


def test_db_session_rolls_back_on_error(owners):
    with pytest.raises(RuntimeError), db_session() as s:
        s.add(_meeting("mtg_1", "alice", MeetingStatus.pending))
        s.flush()
        raise RuntimeError("boom")

    with db_session() as s:
        assert MeetingRepository(s).get("mtg_1") is None


def test_active_slot_is_unique_at_store_level(owners):
    with db_session() as s:
        s.add(_meeting("mtg_1", "alice", MeetingStatus.pending))

    # обход проверки сервиса: параллельный запрос, пишущий тот же слот
    with pytest.raises(IntegrityError), db_session() as s:
        s.add(_meeting("mtg_2", "carol", MeetingStatus.accepted))


def test_inactive_meetings_do_not_hold_slot(owners):
    with db_session() as s:
        s.add(_meeting("mtg_1", "alice", MeetingStatus.rejected))
        s.add(_meeting("mtg_2", "alice", MeetingStatus.cancelled))
        s.add(_meeting("mtg_3", "carol", MeetingStatus.pending))

    with db_session() as s:
        found = MeetingRepository(s).find_active_slot(
            post_owner_id="bob", scheduled_date=date(2099, 1, 1), scheduled_time="10:00"
        )
        assert found is not None
        assert found.id == "mtg_3"
