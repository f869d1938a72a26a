from rest_framework.decorators import api_view
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, inline_serializer

from ..services import StatsService
from ..serializers import StatsSerializer
from .responses import internal_error_response


@extend_schema(responses={200: inline_serializer('StatsResponse', fields={'stats': StatsSerializer()})})
@api_view(['GET'])
def stats_summary(request):
    """
    GET /stats/summary - Общая статистика по ревью, PR и командам
    """
    try:
        stats = StatsService().get_review_stats()
    except Exception as e:
        return internal_error_response(e)

    return Response({
        'stats': StatsSerializer(stats).data
    })
