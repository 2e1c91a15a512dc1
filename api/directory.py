"""
Доступ к данным: команды, пользователи, PR и назначения ревьюверов.

Единственный источник правды для сервисов. Непредвиденные ошибки базы
заворачиваются в DirectoryError, отсутствующие сущности - в NotFound.
Изменения набора ревьюверов одного PR выполняются под блокировкой строки PR.
"""
import functools
import logging
from typing import Dict, Iterable, List, Optional

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count, Q
from django.utils import timezone

from . import lifecycle
from .exceptions import DirectoryError, NoCandidate, NotAssigned, NotFound, PullRequestExists, TeamExists
from .models import PullRequest, ReviewAssignment, Team, User
from .policy import ReviewerSwap

logger = logging.getLogger(__name__)


def wraps_database_errors(method):
    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except DatabaseError as e:
            logger.error("Directory call %s failed: %s", method.__name__, e)
            raise DirectoryError(str(e)) from e
    return wrapper


class Directory:

    # Пользователи и команды

    @wraps_database_errors
    def get_user(self, user_id: str) -> User:
        try:
            return User.objects.select_related('team').get(id=user_id)
        except User.DoesNotExist:
            raise NotFound(f"User '{user_id}' not found")

    @wraps_database_errors
    def get_team(self, team_name: str) -> Team:
        try:
            return Team.objects.prefetch_related('members').get(name=team_name)
        except Team.DoesNotExist:
            raise NotFound(f"Team '{team_name}' not found")

    @wraps_database_errors
    def create_team(self, team_name: str) -> Team:
        try:
            with transaction.atomic():
                return Team.objects.create(name=team_name)
        except IntegrityError:
            raise TeamExists()

    @wraps_database_errors
    def upsert_member(self, team: Team, user_id: str, username: str, is_active: bool) -> User:
        user, created = User.objects.update_or_create(
            id=user_id,
            defaults={'username': username, 'is_active': is_active, 'team': team},
        )
        logger.debug("%s user %s in team %s", 'Created' if created else 'Updated', user_id, team.name)
        return user

    @wraps_database_errors
    def get_users_by_team(self, team_name: str) -> List[User]:
        return list(User.objects.filter(team__name=team_name).order_by('id'))

    @wraps_database_errors
    def get_active_teammates(self, team_name: str, exclude_id: Optional[str] = None) -> List[User]:
        users = User.objects.filter(team__name=team_name, is_active=True)
        if exclude_id is not None:
            users = users.exclude(id=exclude_id)
        return list(users.order_by('id'))

    @wraps_database_errors
    def get_inactive_ids(self, user_ids: Iterable[str]) -> set:
        return set(
            User.objects.filter(id__in=list(user_ids), is_active=False).values_list('id', flat=True)
        )

    @wraps_database_errors
    def set_user_active(self, user_id: str, is_active: bool) -> User:
        with transaction.atomic():
            try:
                user = User.objects.select_for_update().select_related('team').get(id=user_id)
            except User.DoesNotExist:
                raise NotFound(f"User '{user_id}' not found")
            user.is_active = is_active
            user.save(update_fields=['is_active'])
        return user

    @wraps_database_errors
    def deactivate_users(self, user_ids: Iterable[str]) -> List[User]:
        user_ids = list(user_ids)
        with transaction.atomic():
            User.objects.filter(id__in=user_ids).update(is_active=False)
        return list(User.objects.filter(id__in=user_ids).select_related('team').order_by('id'))

    # Pull Request'ы

    @wraps_database_errors
    def get_pr(self, pr_id: str) -> PullRequest:
        try:
            return PullRequest.objects.select_related('author').get(id=pr_id)
        except PullRequest.DoesNotExist:
            raise NotFound(f"PR '{pr_id}' not found")

    @wraps_database_errors
    def pr_exists(self, pr_id: str) -> bool:
        return PullRequest.objects.filter(id=pr_id).exists()

    @wraps_database_errors
    def create_pr(self, pr_id: str, name: str, author: User, reviewer_ids: Iterable[str]) -> PullRequest:
        try:
            with transaction.atomic():
                pr = PullRequest.objects.create(id=pr_id, name=name, author=author)
                self._insert_assignments(pr, reviewer_ids)
        except IntegrityError:
            raise PullRequestExists()
        return pr

    @wraps_database_errors
    def update_pr_status(self, pr_id: str, status: str, merged_at) -> PullRequest:
        """
        Переводит PR в status. PR, уже находящийся в status, не трогается,
        поэтому повторный мерж сохраняет первый merged_at.
        """
        with transaction.atomic():
            updated = (
                PullRequest.objects.filter(id=pr_id)
                .exclude(status=status)
                .update(status=status, merged_at=merged_at)
            )
            if not updated and not PullRequest.objects.filter(id=pr_id).exists():
                raise NotFound(f"PR '{pr_id}' not found")
        return self.get_pr(pr_id)

    def add_reviewers(self, pr_id: str, user_ids: Iterable[str], max_reviewers: int) -> PullRequest:
        return self.apply_swaps(pr_id, [ReviewerSwap(None, user_id) for user_id in user_ids], max_reviewers)

    def swap_reviewer(self, pr_id: str, old_id: Optional[str], new_id: Optional[str] = None,
                      max_reviewers: Optional[int] = None) -> PullRequest:
        """
        Атомарно убирает old_id и добавляет new_id.

        old_id=None - только добавление, new_id=None - только удаление.
        """
        return self.apply_swaps(pr_id, [ReviewerSwap(old_id, new_id)], max_reviewers)

    @wraps_database_errors
    def apply_swaps(self, pr_id: str, swaps: Iterable[ReviewerSwap], max_reviewers: Optional[int] = None) -> PullRequest:
        """Применяет изменения к одному PR под блокировкой его строки"""
        with transaction.atomic():
            pr = self._lock_pr(pr_id)
            lifecycle.ensure_open(pr.status, pr.id)
            for swap in swaps:
                self._swap(pr, swap.old_id, swap.new_id)
            if max_reviewers is not None and pr.assignments.count() > max_reviewers:
                raise DirectoryError(f"PR '{pr_id}' would exceed {max_reviewers} reviewers")
        return pr

    @wraps_database_errors
    def batch_swap_reviewers(self, reassignments: Dict[str, Dict[str, Optional[str]]]):
        """
        reassignments: pr_id -> {old_id -> new_id или None}, всё в одной транзакции.

        PR, смерженные после построения плана, пропускаются.
        """
        if not reassignments:
            return
        with transaction.atomic():
            for pr_id, changes in reassignments.items():
                pr = self._lock_pr(pr_id)
                if lifecycle.is_merged(pr.status):
                    logger.info("Skipping reassignment on merged PR %s", pr_id)
                    continue
                for old_id, new_id in changes.items():
                    self._swap(pr, old_id, new_id)

    @wraps_database_errors
    def get_open_prs_by_reviewers(self, user_ids: Iterable[str]) -> List[PullRequest]:
        user_ids = list(user_ids)
        if not user_ids:
            return []
        return list(
            PullRequest.objects.filter(status=PullRequest.Status.OPEN, assignments__reviewer_id__in=user_ids)
            .distinct()
            .order_by('created_at', 'id')
        )

    @wraps_database_errors
    def get_prs_by_reviewer(self, user_id: str) -> List[PullRequest]:
        return list(
            PullRequest.objects.filter(assignments__reviewer_id=user_id)
            .select_related('author')
            .order_by('-created_at', 'id')
        )

    @wraps_database_errors
    def get_open_prs_with_inactive_reviewers(self, team_name: Optional[str] = None) -> List[PullRequest]:
        assignments = ReviewAssignment.objects.filter(
            pull_request__status=PullRequest.Status.OPEN,
            reviewer__is_active=False,
        )
        if team_name is not None:
            assignments = assignments.filter(reviewer__team__name=team_name)
        pr_ids = assignments.values_list('pull_request_id', flat=True)
        return list(PullRequest.objects.filter(id__in=pr_ids).order_by('created_at', 'id'))

    # Статистика

    @wraps_database_errors
    def reviewer_statistics(self) -> list:
        return list(
            User.objects
            .annotate(
                prs_reviewed=Count('review_assignments'),
                open_prs_reviewed=Count(
                    'review_assignments',
                    filter=Q(review_assignments__pull_request__status=PullRequest.Status.OPEN),
                ),
                merged_prs_reviewed=Count(
                    'review_assignments',
                    filter=Q(review_assignments__pull_request__status=PullRequest.Status.MERGED),
                ),
            )
            .values('id', 'username', 'prs_reviewed', 'open_prs_reviewed', 'merged_prs_reviewed')
            .order_by('-prs_reviewed', 'username')
        )

    @wraps_database_errors
    def pull_request_statistics(self) -> list:
        return list(
            PullRequest.objects
            .annotate(reviewers_count=Count('assignments'))
            .values('id', 'name', 'status', 'author__team__name', 'reviewers_count', 'created_at', 'merged_at')
            .order_by('-created_at')
        )

    # Внутреннее

    @staticmethod
    def _lock_pr(pr_id: str) -> PullRequest:
        try:
            return PullRequest.objects.select_for_update().get(id=pr_id)
        except PullRequest.DoesNotExist:
            raise NotFound(f"PR '{pr_id}' not found")

    @staticmethod
    def _insert_assignments(pr: PullRequest, reviewer_ids: Iterable[str]):
        now = timezone.now()
        ReviewAssignment.objects.bulk_create([
            ReviewAssignment(pull_request=pr, reviewer_id=reviewer_id, assigned_at=now)
            for reviewer_id in reviewer_ids
        ])

    @staticmethod
    def _swap(pr: PullRequest, old_id: Optional[str], new_id: Optional[str]):
        assigned = ReviewAssignment.objects.filter(pull_request=pr)
        if old_id is not None:
            deleted, _ = assigned.filter(reviewer_id=old_id).delete()
            if not deleted:
                raise NotAssigned(f"reviewer '{old_id}' is not assigned to PR '{pr.id}'")
        if new_id is None:
            return
        # тот же кандидат мог быть назначен параллельным запросом
        if assigned.filter(reviewer_id=new_id).exists():
            raise NoCandidate(f"reviewer '{new_id}' is already assigned to PR '{pr.id}'")
        # кандидат мог стать неактивным между чтением и записью
        if new_id == pr.author_id or not User.objects.filter(id=new_id, is_active=True).exists():
            raise NoCandidate(f"reviewer '{new_id}' is no longer eligible for PR '{pr.id}'")
        ReviewAssignment.objects.create(pull_request=pr, reviewer_id=new_id)
