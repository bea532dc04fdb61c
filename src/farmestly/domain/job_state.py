"""Report job state machine.

pending -> processing -> completed | failed
pending | processing -> cancelled (supersession only)

Every status write goes through this table. Repositories turn
``sources_for(target)`` into a guarded ``UPDATE ... WHERE status IN (...)``
so a write that lost a race is a no-op instead of an illegal transition.
"""

from farmestly.domain.enums import ReportJobStatus
from farmestly.exceptions import InvalidJobTransition

TRANSITIONS: dict[ReportJobStatus, frozenset[ReportJobStatus]] = {
    ReportJobStatus.PENDING: frozenset({ReportJobStatus.PROCESSING, ReportJobStatus.CANCELLED}),
    ReportJobStatus.PROCESSING: frozenset(
        {ReportJobStatus.COMPLETED, ReportJobStatus.FAILED, ReportJobStatus.CANCELLED}
    ),
    ReportJobStatus.COMPLETED: frozenset(),
    ReportJobStatus.FAILED: frozenset(),
    ReportJobStatus.CANCELLED: frozenset(),
}

ACTIVE_STATUSES: frozenset[ReportJobStatus] = frozenset({ReportJobStatus.PENDING, ReportJobStatus.PROCESSING})
TERMINAL_STATUSES: frozenset[ReportJobStatus] = frozenset(s for s, nxt in TRANSITIONS.items() if not nxt)


def can_transition(current: ReportJobStatus, target: ReportJobStatus) -> bool:
    return target in TRANSITIONS[ReportJobStatus(current)]


def transition(current: ReportJobStatus, target: ReportJobStatus) -> ReportJobStatus:
    """Validate a single status change and return the new status."""
    current = ReportJobStatus(current)
    target = ReportJobStatus(target)
    if not can_transition(current, target):
        raise InvalidJobTransition(f"Illegal report job transition {current.value} -> {target.value}")
    return target


def sources_for(target: ReportJobStatus) -> frozenset[ReportJobStatus]:
    """All statuses from which ``target`` may be entered."""
    return frozenset(s for s, nxt in TRANSITIONS.items() if ReportJobStatus(target) in nxt)


def is_terminal(status: ReportJobStatus) -> bool:
    return ReportJobStatus(status) in TERMINAL_STATUSES
