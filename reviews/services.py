import logging
import random
from datetime import timedelta

from django.db import transaction
from django.db.models import Avg, Count, DurationField, ExpressionWrapper, F, Q
from django.utils import timezone

from .assignment import (
    DeactivationResult,
    eligible_candidates,
    pick_random_replacement,
    plan_reassignments,
    select_reviewers,
)
from .errors import NoCandidate, NotAssigned, NotFound, PullRequestExists, PullRequestMerged
from .models import PullRequest, PullRequestReviewer, Team, User
from .stores import MembershipStore, PullRequestStore

logger = logging.getLogger(__name__)


class TeamService:
    """
    Сервис для управления командами и пользователями
    """

    def __init__(self, membership=None, pull_requests=None):
        self.membership = membership or MembershipStore()
        self.pull_requests = pull_requests or PullRequestStore()

    def create_team_with_members(self, team_name: str, members_data: list) -> Team:
        """
        Создает команду с пользователями
        """
        team = self.membership.create_team(team_name, members_data)
        logger.info("Team %s created with %d members", team_name, len(members_data))
        return team

    def get_team_with_members(self, team_name: str) -> Team:
        return self.membership.get_team(team_name)

    def bulk_deactivate_team_members(self, team_name: str, user_ids: list) -> DeactivationResult:
        """
        Массовая деактивация пользователей команды с переназначением открытых PR.

        Пользователь деактивируется, только если для всех его открытых PR
        нашлась замена. Замены применяются до деактивации и не
        откатываются, если деактивация упадет.
        """
        if not self.membership.team_exists(team_name):
            raise NotFound(f"Team '{team_name}' not found")

        targets = list(dict.fromkeys(user_ids))
        result = DeactivationResult()
        if not targets:
            return result

        assignments = self.pull_requests.get_open_assignments_for_users(targets)

        # Деактивируемые не могут быть заменой ни для какого PR
        active_members = self.membership.get_active_members(team_name)
        candidate_pool = eligible_candidates([user.id for user in active_members], targets)

        plan = plan_reassignments(assignments, candidate_pool)
        for failed in plan.failed:
            logger.warning(
                "No replacement for %s on PR %s: %s",
                failed.old_reviewer_id, failed.pull_request_id, failed.error,
            )

        result.successful, result.skipped = self.pull_requests.apply_replacements(plan.successful)
        result.failed = plan.failed

        to_deactivate = [user_id for user_id in targets if user_id not in plan.blocked_user_ids]
        if to_deactivate:
            result.deactivated = self.membership.deactivate_members(team_name, to_deactivate)

        logger.info(
            "Team %s: deactivated %s, reassigned %d, failed %d, skipped %d",
            team_name, result.deactivated, len(result.successful), len(result.failed), len(result.skipped),
        )
        return result


class UserService:
    """
    Сервис для управления пользователями
    """

    def __init__(self, membership=None, pull_requests=None):
        self.membership = membership or MembershipStore()
        self.pull_requests = pull_requests or PullRequestStore()

    def set_user_active_status(self, user_id: str, is_active: bool) -> User:
        user = self.membership.set_active(user_id, is_active)
        logger.info("User %s is_active=%s", user_id, is_active)
        return user

    def get_user_review_assignments(self, user_id: str) -> list:
        return self.pull_requests.get_assigned_to(user_id)


class PullRequestService:
    """
    Сервис для управления Pull Request'ами
    """

    def __init__(self, membership=None, pull_requests=None, rng=None):
        self.membership = membership or MembershipStore()
        self.pull_requests = pull_requests or PullRequestStore()
        self.rng = rng or random.SystemRandom()

    @transaction.atomic
    def create_pull_request(self, pr_id: str, pr_name: str, author_id: str) -> PullRequest:
        if self.pull_requests.exists(pr_id):
            raise PullRequestExists()

        try:
            author = self.membership.get_user(author_id)
        except NotFound:
            raise NotFound(f"Author '{author_id}' not found")

        reviewer_ids = self._assign_reviewers(author)
        pr = self.pull_requests.create(pr_id, pr_name, author.id, reviewer_ids)
        logger.info("PR %s created by %s, reviewers %s", pr_id, author_id, reviewer_ids)
        return pr

    def _assign_reviewers(self, author: User) -> list:
        # Автор без команды получает PR без ревьюверов
        team_name = author.team.name if author.team_id else None
        active_members = self.membership.get_active_members(team_name)
        return select_reviewers(author.id, [user.id for user in active_members], self.rng)

    def merge_pull_request(self, pr_id: str) -> PullRequest:
        pr = self.pull_requests.set_merged(pr_id)
        logger.info("PR %s merged at %s", pr_id, pr.merged_at)
        return pr

    @transaction.atomic
    def reassign_reviewer(self, pr_id: str, old_user_id: str) -> tuple:
        """
        Заменяет одного ревьювера случайным активным участником его команды.
        Возвращает обновленный PR и id нового ревьювера.
        """
        pr = self.pull_requests.get_for_update(pr_id)

        # Проверяем доменные правила
        if pr.is_merged:
            raise PullRequestMerged()

        current_reviewer_ids = pr.reviewer_ids()
        if old_user_id not in current_reviewer_ids:
            raise NotAssigned()

        old_reviewer = self.membership.get_user(old_user_id)
        team_name = old_reviewer.team.name if old_reviewer.team_id else None
        candidates = [user.id for user in self.membership.get_active_members(team_name)]

        new_reviewer_id = pick_random_replacement(
            candidates, [pr.author_id, *current_reviewer_ids], self.rng
        )
        if new_reviewer_id is None:
            raise NoCandidate()

        self.pull_requests.swap_reviewer(pr_id, old_user_id, new_reviewer_id)
        logger.info("PR %s: reviewer %s replaced by %s", pr_id, old_user_id, new_reviewer_id)

        return self.pull_requests.get_by_id(pr_id), new_reviewer_id


class StatsService:
    """
    Сервис для сбора статистики
    """

    STALE_OPEN_AFTER = timedelta(days=7)

    def get_review_stats(self) -> dict:
        return {
            'reviewer_assignments': self._reviewer_assignments(),
            'pr_status': self._pr_status(),
            'team_members': self._team_members(),
            'pr_lifetime': self._pr_lifetime(),
        }

    @staticmethod
    def _reviewer_assignments() -> list:
        return list(
            PullRequestReviewer.objects
            .values('user_id')
            .annotate(assignments=Count('id'))
            .order_by('-assignments', 'user_id')
        )

    @staticmethod
    def _pr_status() -> dict:
        stat = {'total': 0, 'open': 0, 'merged': 0, 'average_reviewers': 0.0}
        for row in PullRequest.objects.values('status').annotate(cnt=Count('id')).order_by():
            stat['total'] += row['cnt']
            if row['status'] == PullRequest.Status.OPEN:
                stat['open'] = row['cnt']
            elif row['status'] == PullRequest.Status.MERGED:
                stat['merged'] = row['cnt']

        average = (
            PullRequest.objects
            .annotate(reviewer_count=Count('reviewer_links'))
            .filter(reviewer_count__gt=0)
            .aggregate(avg=Avg('reviewer_count'))['avg']
        )
        if average is not None:
            stat['average_reviewers'] = round(average, 1)
        return stat

    @staticmethod
    def _team_members() -> list:
        rows = (
            User.objects
            .filter(team__isnull=False)
            .values('team__name')
            .annotate(
                active_members=Count('id', filter=Q(is_active=True)),
                inactive_members=Count('id', filter=Q(is_active=False)),
            )
            .order_by('team__name')
        )
        return [
            {
                'team_name': row['team__name'],
                'active_members': row['active_members'],
                'inactive_members': row['inactive_members'],
            }
            for row in rows
        ]

    @classmethod
    def _pr_lifetime(cls) -> dict:
        average = (
            PullRequest.objects
            .filter(status=PullRequest.Status.MERGED, merged_at__isnull=False)
            .aggregate(avg=Avg(ExpressionWrapper(
                F('merged_at') - F('created_at'), output_field=DurationField()
            )))['avg']
        )
        average_seconds = average.total_seconds() if average is not None else 0

        total_minutes = round(average_seconds / 60)
        open_older = PullRequest.objects.filter(
            status=PullRequest.Status.OPEN,
            created_at__lte=timezone.now() - cls.STALE_OPEN_AFTER,
        ).count()

        return {
            'average_merge': {
                'days': total_minutes // (24 * 60),
                'hours': (total_minutes % (24 * 60)) // 60,
                'minutes': total_minutes % 60,
            },
            'open_older_than_7_days': open_older,
        }
