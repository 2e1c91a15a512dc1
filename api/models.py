from django.db import models
from django.utils import timezone

from .policy import ReviewState


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
    team = models.ForeignKey(Team, on_delete=models.PROTECT, related_name='members', null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.username} ({self.id})"

    class Meta:
        db_table = 'users'
        ordering = ['id']


class PullRequest(models.Model):
    class Status(models.TextChoices):
        OPEN = 'OPEN', 'Open'
        MERGED = 'MERGED', 'Merged'

    id = models.CharField(max_length=100, primary_key=True)
    name = models.CharField(max_length=200)
    author = models.ForeignKey(User, on_delete=models.PROTECT, related_name='authored_prs')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.OPEN)
    reviewers = models.ManyToManyField(
        User,
        through='ReviewAssignment',
        related_name='assigned_prs',
        blank=True,
    )
    created_at = models.DateTimeField(default=timezone.now)
    merged_at = models.DateTimeField(null=True, blank=True)

    def reviewer_ids(self) -> list:
        """Идентификаторы ревьюверов в порядке назначения"""
        return list(
            self.assignments.order_by('assigned_at', 'id').values_list('reviewer_id', flat=True)
        )

    def review_state(self) -> ReviewState:
        return ReviewState(
            pr_id=self.id,
            author_id=self.author_id,
            status=self.status,
            reviewer_ids=tuple(self.reviewer_ids()),
            merged_at=self.merged_at,
        )

    def __str__(self):
        return f"{self.name} ({self.id})"

    class Meta:
        db_table = 'pull_requests'
        ordering = ['created_at', 'id']


class ReviewAssignment(models.Model):
    pull_request = models.ForeignKey(PullRequest, on_delete=models.CASCADE, related_name='assignments')
    reviewer = models.ForeignKey(User, on_delete=models.PROTECT, related_name='review_assignments')
    assigned_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"{self.pull_request_id} -> {self.reviewer_id}"

    class Meta:
        db_table = 'pr_reviewers'
        constraints = [
            models.UniqueConstraint(fields=['pull_request', 'reviewer'], name='unique_pr_reviewer'),
        ]
