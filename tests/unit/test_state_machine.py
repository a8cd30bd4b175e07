from __future__ import annotations

import pytest

from venture_connect.domain.enums import MeetingStatus
from venture_connect.domain.state_machine import allowed_targets, is_terminal, transition


def test_pending_can_go_anywhere_but_pending():
    assert allowed_targets(MeetingStatus.pending) == {
        MeetingStatus.accepted,
        MeetingStatus.rejected,
        MeetingStatus.cancelled,
    }


def test_accepted_only_cancels():
    r = transition(MeetingStatus.accepted, MeetingStatus.cancelled)
    assert r.ok is True
    assert r.status == MeetingStatus.cancelled

    r = transition(MeetingStatus.accepted, MeetingStatus.rejected)
    assert r.ok is False
    assert r.status == MeetingStatus.accepted
    assert r.reason == "accepted_to_rejected_not_allowed"


@pytest.mark.parametrize("terminal", [MeetingStatus.rejected, MeetingStatus.cancelled])
@pytest.mark.parametrize("target", list(MeetingStatus))
def test_terminal_statuses_are_final(terminal, target):
    assert is_terminal(terminal)
    r = transition(terminal, target)
    assert r.ok is False
    assert r.status == terminal


def test_transition_accepts_raw_values():
    r = transition("pending", "accepted")
    assert r.ok is True
    assert r.status is MeetingStatus.accepted
