import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from . import lifecycle
from .cascade import plan_cascade
from .directory import Directory
from .exceptions import NotFound, PullRequestExists
from .models import PullRequest, Team, User
from .policy import AssignmentPolicy, DEFAULT_MAX_REVIEWERS
from .selection import CandidateSelector

logger = logging.getLogger(__name__)


class BaseService:
    """
    Общие зависимости сервисов: доступ к данным, генератор выбора и лимит ревьюверов
    """

    def __init__(self, directory: Directory = None, selector: CandidateSelector = None, max_reviewers: int = None):
        self.directory = directory or Directory()
        self.selector = selector or CandidateSelector()
        if max_reviewers is None:
            max_reviewers = getattr(settings, 'MAX_REVIEWERS', DEFAULT_MAX_REVIEWERS)
        self.max_reviewers = max_reviewers
        self.policy = AssignmentPolicy(self.selector, self.max_reviewers)


class TeamService(BaseService):
    """
    Сервис для управления командами и пользователями
    """

    @transaction.atomic
    def create_team_with_members(self, team_name: str, members_data: list) -> Team:
        """
        Создает команду и создает/обновляет ее участников.

        Повторное создание команды с тем же именем - ошибка TEAM_EXISTS,
        существующие пользователи просто переводятся в новую команду.
        """
        team = self.directory.create_team(team_name)

        for member_data in members_data:
            self._create_or_update_user(team, member_data)

        logger.info("Created team %s with %d members", team_name, len(members_data))
        return self.directory.get_team(team_name)

    def _create_or_update_user(self, team: Team, member_data: dict) -> User:
        return self.directory.upsert_member(
            team,
            user_id=member_data['user_id'],
            username=member_data['username'],
            is_active=member_data['is_active'],
        )

    def get_team_with_members(self, team_name: str) -> Team:
        return self.directory.get_team(team_name)


class UserService(BaseService):
    """
    Сервис для управления пользователями и каскадного переназначения
    """

    def set_user_active_status(self, user_id: str, is_active: bool) -> User:
        """
        Меняет флаг активности. При деактивации переназначает открытые PR,
        где пользователь ревьюер; ошибки переназначения не отменяют деактивацию.
        """
        user = self.directory.set_user_active(user_id, is_active)

        if not is_active:
            self._reassign_user_prs(user)

        return user

    def _reassign_user_prs(self, user: User):
        try:
            candidates = []
            if user.team is not None:
                candidates = [u.id for u in self.directory.get_active_teammates(user.team.name, exclude_id=user.id)]
            prs = self.directory.get_open_prs_by_reviewers([user.id])
        except Exception:
            logger.exception("Failed to load open PRs for deactivated user %s", user.id)
            return

        for pr in prs:
            try:
                plan = plan_cascade([pr.review_state()], [user.id], candidates)
                if not plan:
                    continue
                self.directory.apply_swaps(pr.id, plan.swaps_for(pr.id))
                for old_id, new_id in plan.reassignments[pr.id].items():
                    self._log_slot(pr.id, old_id, new_id)
            except Exception:
                logger.exception("Failed to reassign PR %s after deactivating %s", pr.id, user.id)

    def deactivate_team_users(self, team_name: str, user_ids: list) -> tuple:
        """
        Массовая деактивация пользователей команды с переназначением открытых PR.

        Возвращает (деактивированные пользователи, число затронутых слотов ревьюеров).
        Слоты считаются по плану, а не по успешным записям.
        """
        user_ids = list(dict.fromkeys(user_ids or []))
        if not user_ids:
            return [], 0

        self.directory.get_team(team_name)
        team_members = self.directory.get_users_by_team(team_name)

        member_ids = {member.id for member in team_members}
        foreign = [user_id for user_id in user_ids if user_id not in member_ids]
        if foreign:
            raise NotFound(f"Users {foreign} not found in team '{team_name}'")

        deactivating = set(user_ids)
        candidates = [
            member.id for member in team_members
            if member.is_active and member.id not in deactivating
        ]
        open_prs = self.directory.get_open_prs_by_reviewers(user_ids)
        plan = plan_cascade([pr.review_state() for pr in open_prs], deactivating, candidates)

        deactivated = self.directory.deactivate_users(user_ids)
        logger.info("Deactivated %d users in team %s", len(deactivated), team_name)

        self._apply_plan(plan, f"team {team_name}")

        return deactivated, plan.slots_touched

    def reconcile_inactive_reviewers(self, team_name: str = None) -> int:
        """
        Чинит открытые PR, которые все еще ссылаются на неактивных ревьюверов
        (например, после сбоя между деактивацией и переназначением).

        Замены берутся из команды каждого неактивного ревьювера.
        Возвращает число запланированных слотов.
        """
        if team_name is not None:
            self.directory.get_team(team_name)

        prs = self.directory.get_open_prs_with_inactive_reviewers(team_name)
        if not prs:
            return 0

        states = [pr.review_state() for pr in prs]
        reviewer_ids = {rid for state in states for rid in state.reviewer_ids}
        inactive_ids = self.directory.get_inactive_ids(reviewer_ids)

        by_team = {}
        for reviewer_id in sorted(inactive_ids):
            reviewer = self.directory.get_user(reviewer_id)
            reviewer_team = reviewer.team.name if reviewer.team else None
            if team_name is not None and reviewer_team != team_name:
                continue
            by_team.setdefault(reviewer_team, set()).add(reviewer_id)

        touched = 0
        for reviewer_team, stale_ids in by_team.items():
            if reviewer_team is None:
                candidates = []
            else:
                candidates = [u.id for u in self.directory.get_active_teammates(reviewer_team)]
            plan = plan_cascade(states, stale_ids, candidates)
            self._apply_plan(plan, f"reconcile {reviewer_team}")
            touched += plan.slots_touched
            # следующий план должен видеть уже примененные замены
            if plan:
                states = [pr.review_state() for pr in self.directory.get_open_prs_with_inactive_reviewers(team_name)]

        return touched

    def _apply_plan(self, plan, context: str):
        if not plan:
            return
        try:
            self.directory.batch_swap_reviewers(plan.reassignments)
        except Exception:
            logger.exception("Failed to apply reviewer reassignment plan (%s)", context)
            return

        for pr_id, changes in plan.reassignments.items():
            for old_id, new_id in changes.items():
                self._log_slot(pr_id, old_id, new_id)

    @staticmethod
    def _log_slot(pr_id: str, old_id: str, new_id: str):
        if new_id is None:
            logger.warning("No available candidates for PR %s, removed reviewer %s", pr_id, old_id)
        else:
            logger.info("Reassigned PR %s: %s -> %s", pr_id, old_id, new_id)

    def get_user_review_assignments(self, user_id: str) -> list:
        self.directory.get_user(user_id)
        return self.directory.get_prs_by_reviewer(user_id)


class PullRequestService(BaseService):
    """
    Сервис для управления Pull Request'ами
    """

    def create_pull_request(self, pr_id: str, pr_name: str, author_id: str) -> PullRequest:
        author = self.directory.get_user(author_id)

        # Проверяем, существует ли PR
        if self.directory.pr_exists(pr_id):
            raise PullRequestExists()

        # Проверяем, что у автора есть команда
        if author.team is None:
            raise NotFound(f"Author '{author_id}' has no team")

        reviewers = self._assign_reviewers(author)
        pr = self.directory.create_pr(pr_id, pr_name, author, reviewers)

        logger.info("Created PR %s by %s with reviewers %s", pr_id, author_id, reviewers)
        return pr

    def _assign_reviewers(self, author: User) -> list:
        # Активные участники команды автора, без самого автора
        pool = [u.id for u in self.directory.get_active_teammates(author.team.name, exclude_id=author.id)]
        return self.policy.create_assignment(author.id, pool)

    def merge_pull_request(self, pr_id: str) -> PullRequest:
        pr = self.directory.get_pr(pr_id)
        state = pr.review_state()

        merged = self.policy.merge(state, timezone.now())
        if merged.status == state.status:
            return pr

        logger.info("Merged PR %s", pr_id)
        return self.directory.update_pr_status(pr_id, merged.status, merged.merged_at)

    def reassign_reviewer(self, pr_id: str, old_user_id: str) -> tuple:
        """
        Заменяет одного ревьювера случайным активным участником его команды.

        Возвращает (PR, новый ревьювер).
        """
        pr = self.directory.get_pr(pr_id)
        state = pr.review_state()

        # Проверяем доменные правила до поиска кандидатов
        self.policy.check_replaceable(state, old_user_id)

        # Кандидаты из команды заменяемого ревьювера, а не автора
        old_reviewer = self.directory.get_user(old_user_id)
        pool = []
        if old_reviewer.team is not None:
            pool = [u.id for u in self.directory.get_active_teammates(old_reviewer.team.name, exclude_id=old_user_id)]

        swap = self.policy.replace_one(state, old_user_id, pool)
        pr = self.directory.swap_reviewer(pr_id, swap.old_id, swap.new_id, max_reviewers=self.max_reviewers)

        logger.info("Reassigned PR %s: %s -> %s", pr_id, swap.old_id, swap.new_id)
        return pr, self.directory.get_user(swap.new_id)

    def top_up_reviewers(self, pr_id: str) -> PullRequest:
        """
        Добирает ревьюверов до лимита из команды автора.

        Если мест нет или кандидатов нет, PR возвращается без изменений.
        """
        pr = self.directory.get_pr(pr_id)
        state = pr.review_state()

        lifecycle.ensure_open(state.status, pr_id)

        inactive_ids = self.directory.get_inactive_ids(state.reviewer_ids)
        if len(state.reviewer_ids) >= self.max_reviewers and not inactive_ids:
            return pr

        author = pr.author
        pool = []
        if author.team is not None:
            pool = [u.id for u in self.directory.get_active_teammates(author.team.name, exclude_id=author.id)]

        swaps = self.policy.top_up(state, pool, inactive_ids)
        if not swaps:
            return pr

        pr = self.directory.apply_swaps(pr_id, swaps, max_reviewers=self.max_reviewers)
        logger.info("Topped up PR %s: %s", pr_id, [(s.old_id, s.new_id) for s in swaps])
        return pr

    def get_prs_by_reviewer(self, user_id: str) -> list:
        self.directory.get_user(user_id)
        return self.directory.get_prs_by_reviewer(user_id)


class StatsService(BaseService):
    """
    Сервис для сбора статистики
    """

    def get_review_stats(self) -> dict:
        """
        Returns:
            dict: Статистика по пользователям и PR
        """
        pr_reviewer_stats = [
            {
                'id': row['id'],
                'name': row['name'],
                'status': row['status'],
                'team_name': row['author__team__name'],
                'reviewers_count': row['reviewers_count'],
                'created_at': row['created_at'],
                'merged_at': row['merged_at'],
            }
            for row in self.directory.pull_request_statistics()
        ]

        return {
            'user_review_stats': self.directory.reviewer_statistics(),
            'pr_reviewer_stats': pr_reviewer_stats,
        }
