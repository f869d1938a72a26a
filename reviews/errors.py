from django.core.exceptions import ObjectDoesNotExist, ValidationError


class NotFound(ObjectDoesNotExist):
    """
    Пользователь, команда или PR не найдены
    """
    code = 'NOT_FOUND'

    def __init__(self, message='resource not found'):
        super().__init__(message)
        self.message = message


class Conflict(ValidationError):
    """
    Базовый класс доменных конфликтов: у каждого свой стабильный код
    """
    default_code = 'CONFLICT'
    default_message = 'conflict'

    def __init__(self, message=None):
        super().__init__(message or self.default_message, code=self.default_code)


class TeamExists(Conflict):
    default_code = 'TEAM_EXISTS'
    default_message = 'team_name already exists'


class PullRequestExists(Conflict):
    default_code = 'PR_EXISTS'
    default_message = 'PR id already exists'


class PullRequestMerged(Conflict):
    default_code = 'PR_MERGED'
    default_message = 'cannot reassign on merged PR'


class NotAssigned(Conflict):
    default_code = 'NOT_ASSIGNED'
    default_message = 'reviewer is not assigned to this PR'


class NoCandidate(Conflict):
    default_code = 'NO_CANDIDATE'
    default_message = 'no active replacement candidate in team'
