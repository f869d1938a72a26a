"""
Хранилища поверх Django ORM.

Каждая мутация набора ревьюверов выполняется в transaction.atomic, строки PR
блокируются через select_for_update, чтобы параллельные запросы к одному PR
шли по очереди.
"""
import logging
from collections import defaultdict
from dataclasses import replace

from django.db import IntegrityError, transaction
from django.utils import timezone

from .assignment import Assignment
from .errors import NotAssigned, NotFound, PullRequestExists, TeamExists
from .models import PullRequest, PullRequestReviewer, Team, User

logger = logging.getLogger(__name__)

PR_NOT_OPEN = 'pull request is no longer open'
REVIEWER_GONE = 'reviewer is no longer assigned'


class MembershipStore:
    """
    Пользователи, их активность и принадлежность к команде
    """

    def get_user(self, user_id: str) -> User:
        try:
            return User.objects.select_related('team').get(id=user_id)
        except User.DoesNotExist:
            raise NotFound(f"User '{user_id}' not found")

    def get_active_members(self, team_name: str) -> list:
        if not team_name:
            return []
        return list(
            User.objects
            .filter(team__name=team_name, is_active=True)
            .order_by('created_at', 'id')
        )

    def set_active(self, user_id: str, is_active: bool) -> User:
        with transaction.atomic():
            try:
                user = User.objects.select_for_update().get(id=user_id)
            except User.DoesNotExist:
                raise NotFound(f"User '{user_id}' not found")
            user.is_active = is_active
            user.save(update_fields=['is_active'])
        return user

    def team_exists(self, team_name: str) -> bool:
        return Team.objects.filter(name=team_name).exists()

    def get_team(self, team_name: str) -> Team:
        try:
            return Team.objects.prefetch_related('members').get(name=team_name)
        except Team.DoesNotExist:
            raise NotFound(f"Team '{team_name}' not found")

    @transaction.atomic
    def create_team(self, team_name: str, members: list) -> Team:
        """
        Создает команду и upsert'ит ее участников.
        Повторное создание команды с тем же именем - ошибка, а не обновление.
        """
        if Team.objects.filter(name=team_name).exists():
            raise TeamExists()

        try:
            with transaction.atomic():
                team = Team.objects.create(name=team_name)
        except IntegrityError:
            raise TeamExists()

        for member in members:
            # Существующий пользователь переезжает в новую команду
            User.objects.update_or_create(
                id=member['user_id'],
                defaults={
                    'username': member['username'],
                    'is_active': member['is_active'],
                    'team': team,
                },
            )

        return team

    def deactivate_members(self, team_name: str, user_ids: list) -> list:
        """
        Деактивирует активных участников команды из списка.
        Возвращает идентификаторы, которые действительно были деактивированы.
        """
        with transaction.atomic():
            try:
                team = Team.objects.get(name=team_name)
            except Team.DoesNotExist:
                raise NotFound(f"Team '{team_name}' not found")

            affected = set(
                User.objects
                .select_for_update()
                .filter(team=team, id__in=user_ids, is_active=True)
                .order_by('id')
                .values_list('id', flat=True)
            )
            User.objects.filter(id__in=affected).update(is_active=False)

        return [user_id for user_id in dict.fromkeys(user_ids) if user_id in affected]


class PullRequestStore:
    """
    Pull Request'ы и их ревьюверы
    """

    @staticmethod
    def _queryset():
        return PullRequest.objects.select_related('author').prefetch_related('reviewer_links')

    def exists(self, pr_id: str) -> bool:
        return PullRequest.objects.filter(id=pr_id).exists()

    def get_by_id(self, pr_id: str) -> PullRequest:
        try:
            return self._queryset().get(id=pr_id)
        except PullRequest.DoesNotExist:
            raise NotFound(f"PR '{pr_id}' not found")

    def get_for_update(self, pr_id: str) -> PullRequest:
        """Блокирует строку PR до конца текущей транзакции"""
        try:
            return PullRequest.objects.select_for_update().get(id=pr_id)
        except PullRequest.DoesNotExist:
            raise NotFound(f"PR '{pr_id}' not found")

    @transaction.atomic
    def create(self, pr_id: str, name: str, author_id: str, reviewer_ids: list) -> PullRequest:
        if PullRequest.objects.filter(id=pr_id).exists():
            raise PullRequestExists()
        if not User.objects.filter(id=author_id).exists():
            raise NotFound(f"Author '{author_id}' not found")

        try:
            with transaction.atomic():
                pr = PullRequest.objects.create(id=pr_id, name=name, author_id=author_id)
        except IntegrityError:
            raise PullRequestExists()

        PullRequestReviewer.objects.bulk_create([
            PullRequestReviewer(pull_request=pr, user_id=user_id) for user_id in reviewer_ids
        ])
        return self.get_by_id(pr_id)

    def set_merged(self, pr_id: str) -> PullRequest:
        """
        Переводит PR в MERGED. Повторный вызов ничего не меняет
        и возвращает PR с прежним merged_at.
        """
        with transaction.atomic():
            pr = self.get_for_update(pr_id)
            if not pr.is_merged:
                pr.status = PullRequest.Status.MERGED
                pr.merged_at = timezone.now()
                pr.save(update_fields=['status', 'merged_at'])
        return self.get_by_id(pr_id)

    def swap_reviewer(self, pr_id: str, old_user_id: str, new_user_id: str) -> None:
        with transaction.atomic():
            deleted, _ = PullRequestReviewer.objects.filter(
                pull_request_id=pr_id, user_id=old_user_id
            ).delete()
            # Ревьювера уже сняли параллельным запросом
            if deleted == 0:
                raise NotAssigned()
            PullRequestReviewer.objects.create(pull_request_id=pr_id, user_id=new_user_id)

    def get_open_assignments_for_users(self, user_ids: list) -> list:
        if not user_ids:
            return []

        links = list(
            PullRequestReviewer.objects
            .filter(user_id__in=user_ids, pull_request__status=PullRequest.Status.OPEN)
            .select_related('pull_request')
            .order_by('pull_request_id', 'user_id')
        )

        reviewers = defaultdict(list)
        current = (
            PullRequestReviewer.objects
            .filter(pull_request_id__in={link.pull_request_id for link in links})
            .order_by('assigned_at', 'id')
            .values_list('pull_request_id', 'user_id')
        )
        for pr_id, user_id in current:
            reviewers[pr_id].append(user_id)

        return [
            Assignment(
                pull_request_id=link.pull_request_id,
                author_id=link.pull_request.author_id,
                old_reviewer_id=link.user_id,
                reviewer_ids=tuple(reviewers[link.pull_request_id]),
            )
            for link in links
        ]

    def apply_replacements(self, replacements: list) -> tuple:
        """
        Применяет пачку замен old -> new одной транзакцией.

        Строки PR блокируются в порядке id. Замены для PR, которые успели
        смержить, и для ревьюверов, которых уже сняли, пропускаются: такой
        ревьювер уже не держит открытый PR и может быть деактивирован.
        Возвращает (примененные, пропущенные с причиной в error).
        """
        if not replacements:
            return [], []

        applied, skipped = [], []
        with transaction.atomic():
            open_ids = set(
                PullRequest.objects
                .select_for_update()
                .filter(id__in={r.pull_request_id for r in replacements}, status=PullRequest.Status.OPEN)
                .order_by('id')
                .values_list('id', flat=True)
            )

            for replacement in replacements:
                if replacement.pull_request_id not in open_ids:
                    logger.warning(
                        "Skipping replacement on PR %s: no longer open", replacement.pull_request_id
                    )
                    skipped.append(replace(replacement, new_reviewer_id='', error=PR_NOT_OPEN))
                    continue

                deleted, _ = PullRequestReviewer.objects.filter(
                    pull_request_id=replacement.pull_request_id,
                    user_id=replacement.old_reviewer_id,
                ).delete()
                if deleted == 0:
                    logger.warning(
                        "Skipping replacement on PR %s: %s is no longer a reviewer",
                        replacement.pull_request_id, replacement.old_reviewer_id,
                    )
                    skipped.append(replace(replacement, new_reviewer_id='', error=REVIEWER_GONE))
                    continue

                PullRequestReviewer.objects.create(
                    pull_request_id=replacement.pull_request_id,
                    user_id=replacement.new_reviewer_id,
                )
                applied.append(replacement)

        return applied, skipped

    def get_assigned_to(self, user_id: str) -> list:
        if not User.objects.filter(id=user_id).exists():
            raise NotFound(f"User '{user_id}' not found")
        return list(
            PullRequest.objects
            .filter(reviewer_links__user_id=user_id)
            .select_related('author')
            .order_by('created_at', 'id')
        )
