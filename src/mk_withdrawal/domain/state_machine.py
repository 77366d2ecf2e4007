"""Withdrawal lifecycle.

    PENDING ──approve──▶ PROCESSING ──settle ok──▶ COMPLETED
       │                      └──────settle fail──▶ FAILED
       └──cancel──▶ CANCELLED

COMPLETED, FAILED and CANCELLED are terminal. Anything not in the table
below is rejected with InvalidStateTransitionError.
"""

from src.mk_common.enums import WithdrawalStatus
from src.mk_common.errors import InvalidStateTransitionError

_TRANSITIONS: dict[WithdrawalStatus, frozenset[WithdrawalStatus]] = {
    WithdrawalStatus.PENDING: frozenset({WithdrawalStatus.PROCESSING, WithdrawalStatus.CANCELLED}),
    WithdrawalStatus.PROCESSING: frozenset({WithdrawalStatus.COMPLETED, WithdrawalStatus.FAILED}),
    WithdrawalStatus.COMPLETED: frozenset(),
    WithdrawalStatus.FAILED: frozenset(),
    WithdrawalStatus.CANCELLED: frozenset(),
}

# Statuses from which an admin approval may (re)start.
APPROVABLE = frozenset({WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING})


def can_transition(current: str, target: str) -> bool:
    return WithdrawalStatus(target) in _TRANSITIONS[WithdrawalStatus(current)]


def assert_transition(withdrawal_id: str, current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidStateTransitionError(
            withdrawal_id, WithdrawalStatus(current).value, WithdrawalStatus(target).value
        )


def is_terminal(status: str) -> bool:
    return not _TRANSITIONS[WithdrawalStatus(status)]
