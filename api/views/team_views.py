from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..services import TeamService, UserService
from ..serializers import (
    BulkDeactivateInputSerializer, ReconcileInputSerializer, TeamInputSerializer, TeamSerializer, UserSerializer,
)
from .errors import maps_domain_errors, validation_error


def _first_error(errors) -> str:
    field, messages = next(iter(errors.items()))
    if isinstance(messages, dict):
        return f'{field}: {_first_error(messages)}'
    if isinstance(messages, list) and messages and isinstance(messages[0], dict):
        index, nested = next((i, m) for i, m in enumerate(messages) if m)
        return f'{field}[{index}]: {_first_error(nested)}'
    return f'{field}: {messages[0]}'


@api_view(['POST'])
@maps_domain_errors(conflict_status=status.HTTP_400_BAD_REQUEST)
def team_add(request):
    """POST /team/add - Создать команду с участниками (создает/обновляет пользователей)"""
    input_serializer = TeamInputSerializer(data=request.data)
    if not input_serializer.is_valid():
        return validation_error(_first_error(input_serializer.errors))

    team = TeamService().create_team_with_members(
        input_serializer.validated_data['team_name'],
        input_serializer.validated_data.get('members', []),
    )
    return Response({'team': TeamSerializer(team).data}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@maps_domain_errors()
def team_get(request):
    """GET /team/get - Получить команду с участниками"""
    team_name = request.query_params.get('team_name')
    if not team_name:
        return validation_error('team_name parameter is required')

    team = TeamService().get_team_with_members(team_name)
    return Response(TeamSerializer(team).data)


@api_view(['POST'])
@maps_domain_errors()
def team_bulk_deactivate(request):
    """
    POST /team/bulkDeactivate - Массово деактивировать участников команды.

    Открытые PR, где они ревьюверы, переназначаются на оставшихся активных участников.
    """
    input_serializer = BulkDeactivateInputSerializer(data=request.data)
    if not input_serializer.is_valid():
        return validation_error(_first_error(input_serializer.errors))

    users, reassigned_count = UserService().deactivate_team_users(
        input_serializer.validated_data['team_name'],
        input_serializer.validated_data['user_ids'],
    )
    return Response({
        'deactivated_users': UserSerializer(users, many=True).data,
        'reassigned_count': reassigned_count
    })


@api_view(['POST'])
@maps_domain_errors()
def team_reconcile(request):
    """POST /team/reconcile - Починить PR, где остались неактивные ревьюверы"""
    input_serializer = ReconcileInputSerializer(data=request.data)
    if not input_serializer.is_valid():
        return validation_error(_first_error(input_serializer.errors))

    team_name = input_serializer.validated_data['team_name']
    reassigned_count = UserService().reconcile_inactive_reviewers(team_name)
    return Response({
        'team_name': team_name,
        'reassigned_count': reassigned_count
    })
