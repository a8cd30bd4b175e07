"""
Машина состояний встречи.

Назначение:
- Централизованное управление переходами статусов
- Одинаковые правила для accept / reject / cancel

Рёбра:
- pending  → accepted | rejected | cancelled
- accepted → cancelled
- rejected, cancelled - терминальные
"""

from __future__ import annotations

from dataclasses import dataclass

from .enums import MeetingStatus


# =============================================================================
# РЕЗУЛЬТАТ ПЕРЕХОДА
# =============================================================================
@dataclass
class TransitionResult:
    ok: bool
    status: MeetingStatus
    reason: str | None = None


# =============================================================================
# ДОПУСТИМЫЕ ПЕРЕХОДЫ
# =============================================================================
_ALLOWED: dict[MeetingStatus, frozenset[MeetingStatus]] = {
    MeetingStatus.pending: frozenset(
        {MeetingStatus.accepted, MeetingStatus.rejected, MeetingStatus.cancelled}
    ),
    MeetingStatus.accepted: frozenset({MeetingStatus.cancelled}),
    MeetingStatus.rejected: frozenset(),
    MeetingStatus.cancelled: frozenset(),
}


def allowed_targets(current: MeetingStatus) -> frozenset[MeetingStatus]:
    return _ALLOWED.get(MeetingStatus(current), frozenset())


def is_terminal(status: MeetingStatus) -> bool:
    return not allowed_targets(status)


# =============================================================================
# ПЕРЕХОД СОСТОЯНИЙ
# =============================================================================
def transition(current: MeetingStatus, target: MeetingStatus) -> TransitionResult:
    """
    Проверяет переход current → target.
    При отказе статус остаётся прежним, reason = "<current>_to_<target>_not_allowed".
    """
    current = MeetingStatus(current)
    target = MeetingStatus(target)
    if target in allowed_targets(current):
        return TransitionResult(ok=True, status=target)
    return TransitionResult(
        ok=False,
        status=current,
        reason=f"{current.value}_to_{target.value}_not_allowed",
    )
