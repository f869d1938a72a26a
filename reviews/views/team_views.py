from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from drf_spectacular.utils import OpenApiParameter, extend_schema, inline_serializer

from ..services import TeamService
from ..serializers import (
    DeactivationResultSerializer,
    ErrorResponseSerializer,
    TeamCreateSerializer,
    TeamDeactivateSerializer,
    TeamSerializer,
)
from .responses import (
    domain_error_response,
    error_response,
    internal_error_response,
    validation_error_response,
)


@extend_schema(
    request=TeamCreateSerializer,
    responses={
        201: inline_serializer('TeamResponse', fields={'team': TeamSerializer()}),
        400: ErrorResponseSerializer,
    },
)
@api_view(['POST'])
def team_add(request):
    """POST /team/add - Создать команду с участниками"""
    form = TeamCreateSerializer(data=request.data)
    if not form.is_valid():
        return validation_error_response(form.errors)
    data = form.validated_data

    try:
        team = TeamService().create_team_with_members(data['team_name'], data.get('members', []))
    except (ObjectDoesNotExist, ValidationError) as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e)

    return Response({
        'team': TeamSerializer(team).data
    }, status=status.HTTP_201_CREATED)


@extend_schema(
    parameters=[OpenApiParameter('team_name', str, required=True)],
    responses={200: TeamSerializer, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer},
)
@api_view(['GET'])
def team_get(request):
    """GET /team/get - Получить команду с участниками"""
    team_name = request.query_params.get('team_name')
    if not team_name:
        return error_response(
            'VALIDATION_ERROR', 'team_name parameter is required', status.HTTP_400_BAD_REQUEST
        )

    try:
        team = TeamService().get_team_with_members(team_name)
    except (ObjectDoesNotExist, ValidationError) as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e)

    return Response(TeamSerializer(team).data)


@extend_schema(
    request=TeamDeactivateSerializer,
    responses={
        200: inline_serializer('TeamDeactivateResponse', fields={'result': DeactivationResultSerializer()}),
        400: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
    },
)
@api_view(['POST'])
def team_deactivate(request):
    """POST /team/deactivate - Массовая деактивация участников с переназначением открытых PR"""
    form = TeamDeactivateSerializer(data=request.data)
    if not form.is_valid():
        return validation_error_response(form.errors)
    data = form.validated_data

    try:
        result = TeamService().bulk_deactivate_team_members(data['team_name'], data['user_ids'])
    except (ObjectDoesNotExist, ValidationError) as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e)

    return Response({
        'result': DeactivationResultSerializer(result).data
    })
