"""
Планирование каскадного переназначения при деактивации пользователей.

План строится целиком до любых записей: для каждого открытого PR, где
ревьюит кто-то из деактивируемых, каждому такому ревьюверу ищется замена из
активных участников команды. Множество занятых кандидатов собирается заново
для каждого PR, поэтому один кандидат не попадет на PR дважды.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence

from . import lifecycle
from .policy import ReviewState, ReviewerSwap

logger = logging.getLogger(__name__)


@dataclass
class CascadePlan:
    # pr_id -> {старый ревьювер -> новый ревьювер или None}
    reassignments: Dict[str, Dict[str, Optional[str]]] = field(default_factory=dict)

    @property
    def slots_touched(self) -> int:
        return sum(len(changes) for changes in self.reassignments.values())

    @property
    def vacated(self) -> int:
        return sum(
            1 for changes in self.reassignments.values()
            for new_id in changes.values() if new_id is None
        )

    def swaps_for(self, pr_id: str) -> list:
        return [ReviewerSwap(old_id, new_id) for old_id, new_id in self.reassignments.get(pr_id, {}).items()]

    def __bool__(self):
        return bool(self.reassignments)


def plan_pull_request(state: ReviewState, deactivating: set, active_candidates: Sequence[str]) -> Dict[str, Optional[str]]:
    """Замены для одного PR; пустой словарь, если PR не затронут"""
    if lifecycle.is_merged(state.status):
        return {}

    leaving = [rid for rid in state.reviewer_ids if rid in deactivating]
    if not leaving:
        return {}

    occupied = {state.author_id}
    occupied.update(rid for rid in state.reviewer_ids if rid not in deactivating)

    changes = {}
    for old_id in leaving:
        new_id = next((candidate for candidate in active_candidates if candidate not in occupied), None)
        if new_id is not None:
            occupied.add(new_id)
        changes[old_id] = new_id
    return changes


def plan_cascade(prs: Iterable[ReviewState], deactivating_ids: Iterable[str],
                 active_candidates: Sequence[str]) -> CascadePlan:
    """
    Строит план переназначений.

    active_candidates - активные участники команды вне деактивируемого
    множества в стабильном порядке; первый свободный кандидат занимает слот.
    Если свободных нет, слот освобождается без замены.
    """
    deactivating = set(deactivating_ids)
    candidates = [candidate for candidate in active_candidates if candidate not in deactivating]

    plan = CascadePlan()
    for state in prs:
        changes = plan_pull_request(state, deactivating, candidates)
        if changes:
            plan.reassignments[state.pr_id] = changes

    logger.debug(
        "Cascade plan: %d PRs, %d slots, %d vacated",
        len(plan.reassignments), plan.slots_touched, plan.vacated,
    )
    return plan
