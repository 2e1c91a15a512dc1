from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..services import StatsService
from ..serializers import StatsSerializer
from .errors import maps_domain_errors


@api_view(['GET'])
@maps_domain_errors()
def stats_overview(request):
    """GET /statistic - Статистика назначений по пользователям и PR"""
    return Response(StatsSerializer(StatsService().get_review_stats()).data)
