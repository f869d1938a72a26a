from django.db import models
from django.utils import timezone


class Team(models.Model):
    name = models.CharField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'teams'


class User(models.Model):
    id = models.CharField(max_length=50, primary_key=True)
    username = models.CharField(max_length=100)
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name='members', null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.username} ({self.id})"

    class Meta:
        db_table = 'users'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['team', 'is_active'], name='idx_users_team_active'),
        ]


class PullRequest(models.Model):
    class Status(models.TextChoices):
        OPEN = 'OPEN', 'Open'
        MERGED = 'MERGED', 'Merged'

    id = models.CharField(max_length=100, primary_key=True)
    name = models.CharField(max_length=200)
    author = models.ForeignKey(User, on_delete=models.CASCADE, related_name='authored_prs')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.OPEN)
    reviewers = models.ManyToManyField(
        User,
        through='PullRequestReviewer',
        related_name='assigned_prs',
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    merged_at = models.DateTimeField(null=True, blank=True)

    @property
    def is_merged(self):
        return self.status == self.Status.MERGED

    def reviewer_ids(self):
        return [row.user_id for row in self.reviewer_links.all()]

    def clean(self):
        if self.status == self.Status.MERGED and not self.merged_at:
            self.merged_at = timezone.now()

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.name} ({self.id})"

    class Meta:
        db_table = 'pull_requests'
        indexes = [
            models.Index(fields=['status'], name='idx_pull_requests_status'),
        ]


class PullRequestReviewer(models.Model):
    """
    Строка назначения ревьювера; удаление и вставка выполняются в одной транзакции
    """
    pull_request = models.ForeignKey(PullRequest, on_delete=models.CASCADE, related_name='reviewer_links')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='review_links')
    assigned_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.pull_request_id} -> {self.user_id}"

    class Meta:
        db_table = 'pr_reviewers'
        ordering = ['assigned_at', 'id']
        constraints = [
            models.UniqueConstraint(fields=['pull_request', 'user'], name='uniq_pr_reviewer'),
        ]
