from rest_framework import serializers, status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from drf_spectacular.utils import extend_schema, inline_serializer

from ..services import PullRequestService
from ..serializers import (
    ErrorResponseSerializer,
    PullRequestSerializer,
    PullRequestCreateSerializer,
    PullRequestMergeSerializer,
    PullRequestReassignSerializer,
)
from .responses import domain_error_response, internal_error_response, validation_error_response


PR_RESPONSE = inline_serializer('PullRequestResponse', fields={'pr': PullRequestSerializer()})


@extend_schema(
    request=PullRequestCreateSerializer,
    responses={201: PR_RESPONSE, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer,
               409: ErrorResponseSerializer},
)
@api_view(['POST'])
def pullrequest_create(request):
    """POST /pullRequest/create - Создать PR и назначить до двух ревьюверов"""
    form = PullRequestCreateSerializer(data=request.data)
    if not form.is_valid():
        return validation_error_response(form.errors)
    data = form.validated_data

    try:
        pr = PullRequestService().create_pull_request(
            data['pull_request_id'], data['pull_request_name'], data['author_id']
        )
    except (ObjectDoesNotExist, ValidationError) as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e)

    return Response({
        'pr': PullRequestSerializer(pr).data
    }, status=status.HTTP_201_CREATED)


@extend_schema(
    request=PullRequestMergeSerializer,
    responses={200: PR_RESPONSE, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer},
)
@api_view(['POST'])
def pullrequest_merge(request):
    """POST /pullRequest/merge - Пометить PR как MERGED"""
    form = PullRequestMergeSerializer(data=request.data)
    if not form.is_valid():
        return validation_error_response(form.errors)

    try:
        pr = PullRequestService().merge_pull_request(form.validated_data['pull_request_id'])
    except (ObjectDoesNotExist, ValidationError) as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e)

    return Response({
        'pr': PullRequestSerializer(pr).data
    })


@extend_schema(
    request=PullRequestReassignSerializer,
    responses={
        200: inline_serializer('ReassignResponse', fields={
            'pr': PullRequestSerializer(),
            'replaced_by': serializers.CharField(),
        }),
        400: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
        409: ErrorResponseSerializer,
    },
)
@api_view(['POST'])
def pullrequest_reassign(request):
    """POST /pullRequest/reassign - Переназначить ревьювера"""
    form = PullRequestReassignSerializer(data=request.data)
    if not form.is_valid():
        return validation_error_response(form.errors)
    data = form.validated_data

    try:
        pr, new_reviewer_id = PullRequestService().reassign_reviewer(
            data['pull_request_id'], data['old_user_id']
        )
    except (ObjectDoesNotExist, ValidationError) as e:
        return domain_error_response(e)
    except Exception as e:
        return internal_error_response(e)

    return Response({
        'pr': PullRequestSerializer(pr).data,
        'replaced_by': new_reviewer_id
    })
