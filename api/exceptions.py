"""
Типизированные ошибки сервисного слоя.

Доменные ошибки наследуются от исключений Django, которыми сервисы и раньше
сообщали о проблемах: ``ObjectDoesNotExist`` для отсутствующих сущностей и
``ValidationError`` с кодом для нарушений правил. Код ошибки уходит в ответ API.
"""
from django.core.exceptions import ObjectDoesNotExist, ValidationError


class NotFound(ObjectDoesNotExist):
    code = 'NOT_FOUND'

    def __init__(self, message='resource not found'):
        super().__init__(message)
        self.message = message


class DomainError(ValidationError):
    """Базовая ошибка нарушения доменного правила"""
    default_code = 'VALIDATION_ERROR'
    default_message = 'validation error'

    def __init__(self, message=None, code=None):
        super().__init__(message or self.default_message, code=code or self.default_code)


class AlreadyExists(DomainError):
    default_code = 'ALREADY_EXISTS'
    default_message = 'resource already exists'


class TeamExists(AlreadyExists):
    default_code = 'TEAM_EXISTS'
    default_message = 'team_name already exists'


class PullRequestExists(AlreadyExists):
    default_code = 'PR_EXISTS'
    default_message = 'PR id already exists'


class InvalidState(DomainError):
    default_code = 'PR_MERGED'
    default_message = 'cannot reassign on merged PR'


class NotAssigned(DomainError):
    default_code = 'NOT_ASSIGNED'
    default_message = 'reviewer is not assigned to this PR'


class NoCandidate(DomainError):
    default_code = 'NO_CANDIDATE'
    default_message = 'no active replacement candidate in team'


class DirectoryError(Exception):
    """Непредвиденная ошибка слоя данных"""
    code = 'SERVER_ERROR'


class AssignmentInvariantError(RuntimeError):
    """Вычисленный набор ревьюверов нарушает инварианты назначения"""
