from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..services import PullRequestService
from ..serializers import PullRequestSerializer
from .errors import maps_domain_errors, missing_fields, validation_error


def _pr_response(pr, http_status=status.HTTP_200_OK, **extra) -> Response:
    return Response({'pr': PullRequestSerializer(pr).data, **extra}, status=http_status)


@api_view(['POST'])
@maps_domain_errors()
def pullrequest_create(request):
    """POST /pullRequest/create - Создать PR и назначить до двух ревьюверов"""
    missing = missing_fields(request.data, 'pull_request_id', 'pull_request_name', 'author_id')
    if missing:
        return validation_error(f"{', '.join(missing)} required")

    pr = PullRequestService().create_pull_request(
        request.data['pull_request_id'],
        request.data['pull_request_name'],
        request.data['author_id'],
    )
    return _pr_response(pr, status.HTTP_201_CREATED)


@api_view(['POST'])
@maps_domain_errors()
def pullrequest_merge(request):
    """POST /pullRequest/merge - Пометить PR как MERGED (идемпотентно)"""
    if missing_fields(request.data, 'pull_request_id'):
        return validation_error('pull_request_id is required')
    pr_id = request.data['pull_request_id']

    return _pr_response(PullRequestService().merge_pull_request(pr_id))


@api_view(['POST'])
@maps_domain_errors()
def pullrequest_reassign(request):
    """POST /pullRequest/reassign - Заменить ревьювера участником его команды"""
    missing = missing_fields(request.data, 'pull_request_id', 'old_user_id')
    if missing:
        return validation_error(f"{', '.join(missing)} required")

    pr, new_reviewer = PullRequestService().reassign_reviewer(
        request.data['pull_request_id'],
        request.data['old_user_id'],
    )
    return _pr_response(pr, replaced_by=new_reviewer.id)


@api_view(['POST'])
@maps_domain_errors()
def pullrequest_auto_assign(request):
    """POST /pullRequest/autoAssign - Добрать ревьюверов до лимита"""
    if missing_fields(request.data, 'pull_request_id'):
        return validation_error('pull_request_id is required')
    pr_id = request.data['pull_request_id']

    return _pr_response(PullRequestService().top_up_reviewers(pr_id))
