"""
Жизненный цикл PR: OPEN -> MERGED.

MERGED - терминальное состояние. Мерж идемпотентен, все операции,
меняющие набор ревьюверов, на смерженном PR запрещены.
"""
from .exceptions import InvalidState

OPEN = 'OPEN'
MERGED = 'MERGED'

TRANSITIONS = {
    OPEN: {MERGED},
    MERGED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, set())


def is_merged(status: str) -> bool:
    return status == MERGED


def ensure_open(status: str, pr_id: str = None):
    if is_merged(status):
        message = f"cannot reassign on merged PR '{pr_id}'" if pr_id else None
        raise InvalidState(message)


def merge(status: str, merged_at, now):
    """
    Возвращает (status, merged_at) после мержа.

    Повторный мерж сохраняет время первого.
    """
    if is_merged(status):
        return status, merged_at

    if not can_transition(status, MERGED):
        raise InvalidState(f"cannot merge PR in status '{status}'")

    return MERGED, now
