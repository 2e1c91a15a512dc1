"""
Правила назначения ревьюверов.

Политика ничего не читает и не пишет сама: она получает снимок PR и пул
кандидатов, собранный вызывающим кодом, и возвращает решение - каких
ревьюверов убрать и кого поставить. Инварианты после каждого решения:

* автор не бывает ревьювером своего PR;
* ревьюверы не повторяются;
* ревьюверов не больше ``max_reviewers``.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from . import lifecycle
from .exceptions import AssignmentInvariantError, NoCandidate, NotAssigned
from .selection import CandidateSelector

DEFAULT_MAX_REVIEWERS = 2


@dataclass(frozen=True)
class ReviewState:
    """Снимок PR, достаточный для принятия решений о ревьюверах"""

    pr_id: str
    author_id: str
    status: str = lifecycle.OPEN
    reviewer_ids: Tuple[str, ...] = field(default_factory=tuple)
    merged_at: Optional[datetime] = None


@dataclass(frozen=True)
class ReviewerSwap:
    """
    Одно изменение набора ревьюверов.

    old_id=None - добавить new_id, new_id=None - просто убрать old_id.
    """

    old_id: Optional[str] = None
    new_id: Optional[str] = None


def apply_swaps(reviewer_ids: Sequence[str], swaps: Iterable[ReviewerSwap]) -> List[str]:
    """Применяет изменения к упорядоченному набору ревьюверов"""
    result = list(reviewer_ids)
    for swap in swaps:
        if swap.old_id is not None and swap.old_id in result:
            result.remove(swap.old_id)
        if swap.new_id is not None:
            result.append(swap.new_id)
    return result


def check_invariants(author_id: str, reviewer_ids: Sequence[str], max_reviewers: int):
    if author_id in reviewer_ids:
        raise AssignmentInvariantError(f"author '{author_id}' cannot review own PR")
    if len(set(reviewer_ids)) != len(reviewer_ids):
        raise AssignmentInvariantError(f"duplicate reviewers: {list(reviewer_ids)}")
    if len(reviewer_ids) > max_reviewers:
        raise AssignmentInvariantError(
            f"{len(reviewer_ids)} reviewers exceed the limit of {max_reviewers}"
        )


class AssignmentPolicy:

    def __init__(self, selector: CandidateSelector = None, max_reviewers: int = DEFAULT_MAX_REVIEWERS):
        self.selector = selector or CandidateSelector()
        self.max_reviewers = max_reviewers

    def create_assignment(self, author_id: str, pool: Sequence[str]) -> List[str]:
        """
        Ревьюверы для нового PR.

        pool - активные участники команды автора без самого автора. Если
        кандидатов меньше лимита, назначаются все, кто есть (в том числе никто).
        """
        reviewers = self.selector.select(pool, self.max_reviewers)
        check_invariants(author_id, reviewers, self.max_reviewers)
        return reviewers

    def top_up(self, state: ReviewState, pool: Sequence[str], inactive_ids: Iterable[str] = ()) -> List[ReviewerSwap]:
        """
        Добирает ревьюверов до лимита.

        Неактивные ревьюверы (остались после прерванного каскада) освобождают
        свои места первыми. Пустой пул - не ошибка, а отсутствие изменений.
        """
        lifecycle.ensure_open(state.status, state.pr_id)

        inactive_ids = set(inactive_ids)
        stale = [rid for rid in state.reviewer_ids if rid in inactive_ids]
        remaining = [rid for rid in state.reviewer_ids if rid not in stale]

        need = self.max_reviewers - len(remaining)
        if need <= 0 and not stale:
            return []

        occupied = set(state.reviewer_ids) | {state.author_id}
        eligible = [candidate for candidate in pool if candidate not in occupied]
        picked = self.selector.select(eligible, max(need, 0))

        swaps = []
        for new_id in picked:
            old_id = stale.pop(0) if stale else None
            swaps.append(ReviewerSwap(old_id, new_id))
        swaps.extend(ReviewerSwap(old_id, None) for old_id in stale)

        check_invariants(state.author_id, apply_swaps(state.reviewer_ids, swaps), self.max_reviewers)
        return swaps

    @staticmethod
    def check_replaceable(state: ReviewState, old_reviewer_id: str):
        """PR должен быть открыт, а заменяемый - назначен на него"""
        lifecycle.ensure_open(state.status, state.pr_id)
        if old_reviewer_id not in state.reviewer_ids:
            raise NotAssigned()

    def replace_one(self, state: ReviewState, old_reviewer_id: str, pool: Sequence[str]) -> ReviewerSwap:
        """
        Замена одного ревьювера.

        pool - активные участники команды заменяемого ревьювера. Автор,
        заменяемый и уже назначенные ревьюверы исключаются здесь.
        """
        self.check_replaceable(state, old_reviewer_id)

        occupied = set(state.reviewer_ids) | {state.author_id, old_reviewer_id}
        eligible = [candidate for candidate in pool if candidate not in occupied]

        new_id = self.selector.select_one(eligible)
        if new_id is None:
            raise NoCandidate()

        swap = ReviewerSwap(old_reviewer_id, new_id)
        check_invariants(state.author_id, apply_swaps(state.reviewer_ids, [swap]), self.max_reviewers)
        return swap

    def merge(self, state: ReviewState, now: datetime) -> ReviewState:
        status, merged_at = lifecycle.merge(state.status, state.merged_at, now)
        return ReviewState(
            pr_id=state.pr_id,
            author_id=state.author_id,
            status=status,
            reviewer_ids=state.reviewer_ids,
            merged_at=merged_at,
        )
