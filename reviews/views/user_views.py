from rest_framework import serializers, status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from drf_spectacular.utils import OpenApiParameter, extend_schema, inline_serializer

from ..services import UserService
from ..serializers import (
    ErrorResponseSerializer,
    PullRequestShortSerializer,
    SetIsActiveSerializer,
    UserSerializer,
)
from .responses import (
    domain_error_response,
    error_response,
    internal_error_response,
    validation_error_response,
)


@extend_schema(
    request=SetIsActiveSerializer,
    responses={
        200: inline_serializer('UserResponse', fields={'user': UserSerializer()}),
        400: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
    },
)
@api_view(['POST'])
def user_set_active(request):
    """POST /users/setIsActive - Установить флаг активности пользователя"""
    form = SetIsActiveSerializer(data=request.data)
    if not form.is_valid():
        return validation_error_response(form.errors)
    data = form.validated_data

    try:
        user = UserService().set_user_active_status(data['user_id'], data['is_active'])
    except (ObjectDoesNotExist, ValidationError) as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e)

    return Response({
        'user': UserSerializer(user).data
    })


@extend_schema(
    parameters=[OpenApiParameter('user_id', str, required=True)],
    responses={
        200: inline_serializer('UserReviewResponse', fields={
            'user_id': serializers.CharField(),
            'pull_requests': PullRequestShortSerializer(many=True),
        }),
        400: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
    },
)
@api_view(['GET'])
def users_get_review(request):
    """GET /users/getReview - Получить PR'ы, где пользователь назначен ревьювером"""
    user_id = request.query_params.get('user_id')
    if not user_id:
        return error_response(
            'VALIDATION_ERROR', 'user_id parameter is required', status.HTTP_400_BAD_REQUEST
        )

    try:
        assigned_prs = UserService().get_user_review_assignments(user_id)
    except (ObjectDoesNotExist, ValidationError) as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e)

    return Response({
        'user_id': user_id,
        'pull_requests': PullRequestShortSerializer(assigned_prs, many=True).data
    })
