from rest_framework import serializers
from .models import Team, User, PullRequest

DATETIME_FORMAT = '%Y-%m-%dT%H:%M:%SZ'


class TeamMemberSerializer(serializers.ModelSerializer):
    user_id = serializers.CharField(source='id')

    class Meta:
        model = User
        fields = ['user_id', 'username', 'is_active']


class TeamSerializer(serializers.ModelSerializer):
    team_name = serializers.CharField(source='name')
    members = TeamMemberSerializer(many=True, source='members.all')

    class Meta:
        model = Team
        fields = ['team_name', 'members']


class UserSerializer(TeamMemberSerializer):
    # пользователь может быть без команды
    team_name = serializers.CharField(source='team.name', allow_null=True, default=None)

    class Meta(TeamMemberSerializer.Meta):
        fields = ['user_id', 'username', 'team_name', 'is_active']


class PullRequestShortSerializer(serializers.ModelSerializer):
    pull_request_id = serializers.CharField(source='id')
    pull_request_name = serializers.CharField(source='name')
    author_id = serializers.CharField()

    class Meta:
        model = PullRequest
        fields = ['pull_request_id', 'pull_request_name', 'author_id', 'status']


class PullRequestSerializer(PullRequestShortSerializer):
    """PR с ревьюверами в порядке назначения"""
    assigned_reviewers = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', format=DATETIME_FORMAT)
    mergedAt = serializers.DateTimeField(source='merged_at', format=DATETIME_FORMAT, allow_null=True)

    class Meta(PullRequestShortSerializer.Meta):
        fields = PullRequestShortSerializer.Meta.fields + ['assigned_reviewers', 'createdAt', 'mergedAt']

    @staticmethod
    def get_assigned_reviewers(obj):
        return obj.reviewer_ids()


# Входные данные

class TeamMemberInputSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=50)
    username = serializers.CharField(max_length=100)
    is_active = serializers.BooleanField()


class TeamInputSerializer(serializers.Serializer):
    team_name = serializers.CharField(max_length=100)
    members = TeamMemberInputSerializer(many=True, required=False)


class BulkDeactivateInputSerializer(serializers.Serializer):
    team_name = serializers.CharField(max_length=100)
    user_ids = serializers.ListField(child=serializers.CharField(max_length=50), allow_empty=True)


class ReconcileInputSerializer(serializers.Serializer):
    # без команды чинятся PR всех команд
    team_name = serializers.CharField(max_length=100, allow_null=True, default=None)


# Статистика

class UserReviewStatsSerializer(serializers.Serializer):
    id = serializers.CharField()
    username = serializers.CharField()
    prs_reviewed = serializers.IntegerField()
    open_prs_reviewed = serializers.IntegerField()
    merged_prs_reviewed = serializers.IntegerField()


class PRReviewerStatsSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    status = serializers.CharField()
    team_name = serializers.CharField(allow_null=True)
    reviewers_count = serializers.IntegerField()
    created_at = serializers.DateTimeField()
    merged_at = serializers.DateTimeField(allow_null=True)


class StatsSerializer(serializers.Serializer):
    user_review_stats = UserReviewStatsSerializer(many=True)
    pr_reviewer_stats = PRReviewerStatsSerializer(many=True)
