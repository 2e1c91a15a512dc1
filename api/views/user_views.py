from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..services import UserService
from ..serializers import UserSerializer, PullRequestShortSerializer
from .errors import maps_domain_errors, missing_fields, validation_error


@api_view(['POST'])
@maps_domain_errors()
def user_set_active(request):
    """
    POST /users/setIsActive - Установить флаг активности пользователя.

    При деактивации открытые PR пользователя переназначаются.
    """
    if missing_fields(request.data, 'user_id', 'is_active'):
        return validation_error('user_id and is_active are required')

    is_active = request.data['is_active']
    if not isinstance(is_active, bool):
        return validation_error('is_active must be a boolean')

    user = UserService().set_user_active_status(request.data['user_id'], is_active)
    return Response({'user': UserSerializer(user).data})


@api_view(['GET'])
@maps_domain_errors()
def users_get_review(request):
    """GET /users/getReview - PR, где пользователь назначен ревьювером"""
    user_id = request.query_params.get('user_id')
    if not user_id:
        return validation_error('user_id parameter is required')

    assigned_prs = UserService().get_user_review_assignments(user_id)
    return Response({
        'user_id': user_id,
        'pull_requests': PullRequestShortSerializer(assigned_prs, many=True).data
    })
