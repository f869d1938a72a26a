from rest_framework import serializers
from .models import Team, User, PullRequest


class TeamMemberSerializer(serializers.ModelSerializer):
    user_id = serializers.CharField(source='id')
    username = serializers.CharField()
    is_active = serializers.BooleanField()

    class Meta:
        model = User
        fields = ['user_id', 'username', 'is_active']


class TeamSerializer(serializers.ModelSerializer):
    team_name = serializers.CharField(source='name')
    members = TeamMemberSerializer(many=True, source='members.all')

    class Meta:
        model = Team
        fields = ['team_name', 'members']


class UserSerializer(serializers.ModelSerializer):
    user_id = serializers.CharField(source='id')
    username = serializers.CharField()
    team_name = serializers.CharField(source='team.name', allow_null=True)
    is_active = serializers.BooleanField()

    class Meta:
        model = User
        fields = ['user_id', 'username', 'team_name', 'is_active']


class PullRequestSerializer(serializers.ModelSerializer):
    pull_request_id = serializers.CharField(source='id')
    pull_request_name = serializers.CharField(source='name')
    author_id = serializers.CharField()
    status = serializers.CharField()
    assigned_reviewers = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', format='%Y-%m-%dT%H:%M:%SZ')
    mergedAt = serializers.DateTimeField(source='merged_at', format='%Y-%m-%dT%H:%M:%SZ', allow_null=True)

    class Meta:
        model = PullRequest
        fields = [
            'pull_request_id', 'pull_request_name', 'author_id',
            'status', 'assigned_reviewers', 'createdAt', 'mergedAt'
        ]

    @staticmethod
    def get_assigned_reviewers(obj):
        return obj.reviewer_ids()


class PullRequestShortSerializer(serializers.ModelSerializer):
    pull_request_id = serializers.CharField(source='id')
    pull_request_name = serializers.CharField(source='name')
    author_id = serializers.CharField()
    status = serializers.CharField()

    class Meta:
        model = PullRequest
        fields = ['pull_request_id', 'pull_request_name', 'author_id', 'status']


class ReassignmentSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField()
    old_reviewer_id = serializers.CharField()
    new_reviewer_id = serializers.CharField(allow_blank=True)
    error = serializers.CharField(allow_blank=True)


class DeactivationResultSerializer(serializers.Serializer):
    deactivated_user_ids = serializers.ListField(child=serializers.CharField(), source='deactivated')
    successful_reassignments = ReassignmentSerializer(many=True, source='successful')
    failed_reassignments = ReassignmentSerializer(many=True, source='failed')
    skipped_reassignments = ReassignmentSerializer(many=True, source='skipped')


# Входные данные запросов

class TeamMemberInputSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=50)
    username = serializers.CharField(max_length=100)
    is_active = serializers.BooleanField()


class TeamCreateSerializer(serializers.Serializer):
    team_name = serializers.CharField(max_length=100)
    members = TeamMemberInputSerializer(many=True, required=False)


class TeamDeactivateSerializer(serializers.Serializer):
    team_name = serializers.CharField(max_length=100)
    user_ids = serializers.ListField(child=serializers.CharField(max_length=50), allow_empty=False)


class SetIsActiveSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=50)
    is_active = serializers.BooleanField()


class PullRequestCreateSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField(max_length=100)
    pull_request_name = serializers.CharField(max_length=200)
    author_id = serializers.CharField(max_length=50)


class PullRequestMergeSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField(max_length=100)


class PullRequestReassignSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField(max_length=100)
    old_user_id = serializers.CharField(max_length=50)


# Статистика

class ReviewerAssignmentStatSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    assignments = serializers.IntegerField()


class PRStatusStatSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    open = serializers.IntegerField()
    merged = serializers.IntegerField()
    average_reviewers = serializers.FloatField()


class TeamMemberStatSerializer(serializers.Serializer):
    team_name = serializers.CharField()
    active_members = serializers.IntegerField()
    inactive_members = serializers.IntegerField()


class DurationSerializer(serializers.Serializer):
    days = serializers.IntegerField()
    hours = serializers.IntegerField()
    minutes = serializers.IntegerField()


class PRLifetimeStatSerializer(serializers.Serializer):
    average_merge = DurationSerializer()
    open_older_than_7_days = serializers.IntegerField()


class StatsSerializer(serializers.Serializer):
    reviewer_assignments = ReviewerAssignmentStatSerializer(many=True)
    pr_status = PRStatusStatSerializer()
    team_members = TeamMemberStatSerializer(many=True)
    pr_lifetime = PRLifetimeStatSerializer()


# Ошибки

class ErrorDetailSerializer(serializers.Serializer):
    code = serializers.CharField()
    message = serializers.CharField()


class ErrorResponseSerializer(serializers.Serializer):
    error = ErrorDetailSerializer()
