import random
from unittest.mock import patch

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.test import TestCase
from django.utils import timezone

from reviews.errors import NotAssigned
from reviews.models import Team, User, PullRequest
from reviews.services import PullRequestService
from reviews.stores import PullRequestStore


class FirstChoiceRandom:
    """Без перемешивания: порядок участников команды сохраняется"""

    def shuffle(self, items):
        pass

    def choice(self, items):
        return items[0]


class PullRequestServiceTest(TestCase):
    def setUp(self):
        self.team = Team.objects.create(name="backend")

        self.author = User.objects.create(id="author1", username="Author", is_active=True, team=self.team)
        self.reviewer1 = User.objects.create(id="reviewer1", username="Reviewer 1", is_active=True, team=self.team)
        self.reviewer2 = User.objects.create(id="reviewer2", username="Reviewer 2", is_active=True, team=self.team)
        self.reviewer3 = User.objects.create(id="reviewer3", username="Reviewer 3", is_active=True, team=self.team)
        self.inactive_reviewer = User.objects.create(id="inactive1", username="Inactive", is_active=False,
                                                     team=self.team)

        self.service = PullRequestService(rng=FirstChoiceRandom())

    def _open_pr(self, pr_id, *reviewers, author=None):
        pr = PullRequest.objects.create(id=pr_id, name="Test PR", author=author or self.author)
        pr.reviewers.add(*reviewers)
        return pr

    def test_create_pull_request_success(self):
        """Тест успешного создания PR"""
        pr = self.service.create_pull_request("pr-1", "Test PR", "author1")

        self.assertEqual(pr.id, "pr-1")
        self.assertEqual(pr.name, "Test PR")
        self.assertEqual(pr.author, self.author)
        self.assertEqual(pr.status, PullRequest.Status.OPEN)
        self.assertIsNone(pr.merged_at)
        self.assertEqual(len(pr.reviewer_ids()), 2)
        self.assertNotIn("author1", pr.reviewer_ids())
        self.assertNotIn("inactive1", pr.reviewer_ids())

    def test_create_pull_request_random_reviewers(self):
        """Тест что при настоящем ГСЧ всегда ровно два разных ревьювера без автора"""
        service = PullRequestService(rng=random.Random(11))
        for i in range(10):
            pr = service.create_pull_request(f"pr-{i}", "Test PR", "author1")
            reviewer_ids = pr.reviewer_ids()
            self.assertEqual(len(reviewer_ids), 2)
            self.assertEqual(len(set(reviewer_ids)), 2)
            self.assertTrue(set(reviewer_ids) <= {"reviewer1", "reviewer2", "reviewer3"})

    def test_create_pull_request_duplicate(self):
        """Тест создания дубликата PR"""
        self.service.create_pull_request("pr-1", "Test PR", "author1")

        with self.assertRaises(ValidationError) as context:
            self.service.create_pull_request("pr-1", "Another PR", "author1")

        self.assertEqual(context.exception.code, 'PR_EXISTS')

    def test_create_pull_request_author_not_found(self):
        """Тест создания PR с несуществующим автором"""
        with self.assertRaises(ObjectDoesNotExist):
            self.service.create_pull_request("pr-1", "Test PR", "nonexistent")

        self.assertFalse(PullRequest.objects.filter(id="pr-1").exists())

    def test_create_pull_request_author_no_team(self):
        """Тест создания PR когда у автора нет команды - PR без ревьюверов"""
        User.objects.create(id="no_team", username="No Team", is_active=True)

        pr = self.service.create_pull_request("pr-1", "Test PR", "no_team")

        self.assertEqual(pr.author_id, "no_team")
        self.assertEqual(pr.reviewer_ids(), [])
        self.assertEqual(pr.status, PullRequest.Status.OPEN)

    def test_create_pull_request_insufficient_reviewers(self):
        """Тест создания PR когда недостаточно ревьюверов"""
        # Оставляем только одного активного пользователя кроме автора
        User.objects.filter(id__in=["reviewer2", "reviewer3"]).update(is_active=False)

        pr = self.service.create_pull_request("pr-1", "Test PR", "author1")

        self.assertEqual(pr.reviewer_ids(), ["reviewer1"])

    def test_create_pull_request_no_reviewers(self):
        """Тест создания PR когда нет доступных ревьюверов"""
        User.objects.filter(id__in=["reviewer1", "reviewer2", "reviewer3"]).update(is_active=False)

        pr = self.service.create_pull_request("pr-1", "Test PR", "author1")

        self.assertEqual(pr.reviewer_ids(), [])
        self.assertEqual(pr.status, PullRequest.Status.OPEN)

    def test_merge_pull_request_success(self):
        """Тест успешного мержа PR"""
        self._open_pr("pr-1")

        merged_pr = self.service.merge_pull_request("pr-1")

        self.assertEqual(merged_pr.status, PullRequest.Status.MERGED)
        self.assertIsNotNone(merged_pr.merged_at)
        self.assertTrue(merged_pr.merged_at <= timezone.now())

    def test_merge_pull_request_idempotent(self):
        """Тест идемпотентности мержа PR"""
        self._open_pr("pr-1")

        merged_pr1 = self.service.merge_pull_request("pr-1")
        merged_pr2 = self.service.merge_pull_request("pr-1")

        # Статус должен остаться MERGED, время не должно измениться
        self.assertEqual(merged_pr2.status, PullRequest.Status.MERGED)
        self.assertEqual(merged_pr2.merged_at, merged_pr1.merged_at)

    def test_merge_pull_request_not_found(self):
        """Тест мержа несуществующего PR"""
        with self.assertRaises(ObjectDoesNotExist):
            self.service.merge_pull_request("nonexistent")

    def test_reassign_reviewer_success(self):
        """Тест успешного переназначения ревьювера"""
        self._open_pr("pr-1", self.reviewer1, self.reviewer2)

        updated_pr, new_reviewer_id = self.service.reassign_reviewer("pr-1", "reviewer1")

        self.assertEqual(new_reviewer_id, "reviewer3")
        self.assertCountEqual(updated_pr.reviewer_ids(), ["reviewer2", "reviewer3"])

    def test_reassign_never_picks_author_or_current_reviewers(self):
        """Тест что заменой не становятся автор и оставшийся ревьювер"""
        service = PullRequestService(rng=random.Random(5))
        for i in range(10):
            self._open_pr(f"pr-{i}", self.reviewer1, self.reviewer2)
            _, new_reviewer_id = service.reassign_reviewer(f"pr-{i}", "reviewer1")
            self.assertEqual(new_reviewer_id, "reviewer3")

    def test_reassign_reviewer_merged_pr(self):
        """Тест переназначения на мерженом PR"""
        pr = self._open_pr("pr-1", self.reviewer1)
        pr.status = PullRequest.Status.MERGED
        pr.save()

        with self.assertRaises(ValidationError) as context:
            self.service.reassign_reviewer("pr-1", "reviewer1")

        self.assertEqual(context.exception.code, 'PR_MERGED')

    def test_reassign_reviewer_merged_pr_checked_before_assignment(self):
        """Тест что на мерженом PR всегда PR_MERGED, даже для неназначенного пользователя"""
        pr = self._open_pr("pr-1", self.reviewer1)
        pr.status = PullRequest.Status.MERGED
        pr.save()

        with self.assertRaises(ValidationError) as context:
            self.service.reassign_reviewer("pr-1", "nonexistent")

        self.assertEqual(context.exception.code, 'PR_MERGED')

    def test_reassign_reviewer_not_assigned(self):
        """Тест переназначения не назначенного ревьювера"""
        pr = self._open_pr("pr-1", self.reviewer1)

        with self.assertRaises(ValidationError) as context:
            self.service.reassign_reviewer("pr-1", "reviewer2")

        self.assertEqual(context.exception.code, 'NOT_ASSIGNED')
        self.assertEqual(pr.reviewer_ids(), ["reviewer1"])

    def test_reassign_reviewer_no_candidates(self):
        """Тест когда нет кандидатов для переназначения"""
        pr = self._open_pr("pr-1", self.reviewer1, self.reviewer2, self.reviewer3)

        with self.assertRaises(ValidationError) as context:
            self.service.reassign_reviewer("pr-1", "reviewer1")

        self.assertEqual(context.exception.code, 'NO_CANDIDATE')
        self.assertCountEqual(pr.reviewer_ids(), ["reviewer1", "reviewer2", "reviewer3"])

    def test_reassign_reviewer_reviewer_no_team(self):
        """Тест переназначения когда у ревьювера нет команды"""
        reviewer_no_team = User.objects.create(id="no_team", username="No Team", is_active=True)
        self._open_pr("pr-1", reviewer_no_team)

        with self.assertRaises(ValidationError) as context:
            self.service.reassign_reviewer("pr-1", "no_team")

        self.assertEqual(context.exception.code, 'NO_CANDIDATE')

    def test_reassign_uses_old_reviewers_team(self):
        """Тест что замена берется из команды старого ревьювера, а не автора"""
        other_team = Team.objects.create(name="frontend")
        outsider = User.objects.create(id="front1", username="Front 1", team=other_team)
        User.objects.create(id="front2", username="Front 2", team=other_team)
        self._open_pr("pr-1", outsider, self.reviewer1)

        _, new_reviewer_id = self.service.reassign_reviewer("pr-1", "front1")

        self.assertEqual(new_reviewer_id, "front2")

    def test_reassign_reviewer_pr_not_found(self):
        """Тест переназначения для несуществующего PR"""
        with self.assertRaises(ObjectDoesNotExist):
            self.service.reassign_reviewer("nonexistent", "reviewer1")

    def test_reassign_lost_race_maps_to_not_assigned(self):
        """Тест что если ревьювера уже сняли параллельно, swap дает NOT_ASSIGNED"""
        self._open_pr("pr-1", self.reviewer1)

        with patch.object(PullRequestStore, 'swap_reviewer', side_effect=NotAssigned()):
            with self.assertRaises(ValidationError) as context:
                self.service.reassign_reviewer("pr-1", "reviewer1")

        self.assertEqual(context.exception.code, 'NOT_ASSIGNED')

    def test_assign_reviewers_method(self):
        """Тест внутреннего метода назначения ревьюверов"""
        reviewers = self.service._assign_reviewers(self.author)

        # Должны быть назначены 2 активных ревьювера (исключая автора)
        self.assertEqual(len(reviewers), 2)
        self.assertNotIn("author1", reviewers)
        self.assertNotIn("inactive1", reviewers)


class ReassignScenarioTest(TestCase):
    """
    Сценарии для команд из четырех и двух человек
    """

    def test_team_of_four(self):
        team = Team.objects.create(name="T")
        for user_id in ["A", "R1", "R2", "R3"]:
            User.objects.create(id=user_id, username=user_id, team=team)
        service = PullRequestService(rng=random.Random(2024))

        pr = service.create_pull_request("p1", "Scenario", "A")
        original = pr.reviewer_ids()
        self.assertEqual(len(original), 2)
        self.assertTrue(set(original) <= {"R1", "R2", "R3"})

        old = original[0]
        other = original[1]
        updated, new_reviewer_id = service.reassign_reviewer("p1", old)

        self.assertEqual({new_reviewer_id}, {"R1", "R2", "R3"} - set(original))
        self.assertNotIn(new_reviewer_id, {"A", other})
        self.assertCountEqual(updated.reviewer_ids(), [other, new_reviewer_id])

    def test_team_of_two(self):
        team = Team.objects.create(name="T2")
        User.objects.create(id="A", username="A", team=team)
        User.objects.create(id="R1", username="R1", team=team)
        service = PullRequestService(rng=random.Random(1))

        pr = service.create_pull_request("p2", "Scenario", "A")
        self.assertEqual(pr.reviewer_ids(), ["R1"])

        with self.assertRaises(ValidationError) as context:
            service.reassign_reviewer("p2", "R1")

        self.assertEqual(context.exception.code, 'NO_CANDIDATE')
        self.assertEqual(PullRequest.objects.get(id="p2").reviewer_ids(), ["R1"])
