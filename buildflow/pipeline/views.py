import logging

from django.db.models import Prefetch
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildflow.core.permissions import HasCompany, IsCompanyAdmin
from buildflow.core.utils import create_activity, error_response_body
from .cache import get_cached_board, cache_board
from .models import Stage, Card
from .serializers import (
    StageSerializer, StageBoardSerializer, CardSerializer,
    CardMoveSerializer, StageReorderSerializer,
)
from . import services

logger = logging.getLogger('buildflow.pipeline')


def _company_stage(request, pk):
    return Stage.objects.filter(pk=pk, company_id=request.user.company_id).first()


def _company_card(request, pk):
    return Card.objects.filter(pk=pk, company_id=request.user.company_id).select_related('stage').first()


def board_queryset(company_id):
    """Stages by order with ACTIVE cards by order, in two queries"""
    return Stage.objects.filter(company_id=company_id).order_by('order', 'id').prefetch_related(
        Prefetch(
            'cards',
            queryset=Card.objects.filter(status=Card.STATUS_ACTIVE).order_by('order', 'id'),
            to_attr='active_cards',
        )
    )


# Stage views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasCompany])
def stage_list_create(request):
    """Board (stages with nested cards) or create a new stage (admin only)"""
    company_id = request.user.company_id

    if request.method == 'GET':
        data = get_cached_board(company_id)
        if data is None:
            data = StageBoardSerializer(board_queryset(company_id), many=True).data
            cache_board(company_id, data)
        return Response(data)

    if not request.user.is_company_admin:
        return Response(error_response_body('Forbidden'), status=status.HTTP_403_FORBIDDEN)

    name = (request.data.get('name') or '').strip()
    color = request.data.get('color')
    if not name or not color:
        return Response(error_response_body('Name and color are required'), status=status.HTTP_400_BAD_REQUEST)

    try:
        stage = services.create_stage(request.user.company, name, color, user=request.user)
    except Exception:
        logger.exception("Error creating stage")
        return Response(error_response_body('Failed to create stage'), status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(StageSerializer(stage).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCompany])
def stage_list(request):
    """Flat stage list without cards"""
    stages = Stage.objects.filter(company_id=request.user.company_id).order_by('order', 'id')
    return Response(StageSerializer(stages, many=True).data)


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def stage_detail(request, pk):
    """Rename/recolor or delete a stage"""
    stage = _company_stage(request, pk)
    if stage is None:
        return Response(error_response_body('Stage not found'), status=status.HTTP_404_NOT_FOUND)

    if request.method == 'PUT':
        name = (request.data.get('name') or '').strip()
        if not name:
            return Response(error_response_body('Name is required'), status=status.HTTP_400_BAD_REQUEST)
        try:
            stage = services.update_stage(stage, name, request.data.get('color'), user=request.user)
        except Exception:
            logger.exception(f"Error updating stage {pk}")
            return Response(error_response_body('Failed to update stage'), status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response(StageSerializer(stage).data)

    try:
        services.delete_stage(stage, user=request.user)
    except services.StageNotEmpty as e:
        return Response(error_response_body(str(e)), status=status.HTTP_400_BAD_REQUEST)
    except Exception:
        logger.exception(f"Error deleting stage {pk}")
        return Response(error_response_body('Failed to delete stage'), status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response({'message': 'Stage deleted successfully'})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCompanyAdmin])
def stage_reorder(request):
    """Rewrite column order from a list of stage ids"""
    serializer = StageReorderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(error_response_body('stageIds is required', serializer.errors),
                        status=status.HTTP_400_BAD_REQUEST)
    try:
        stages = services.reorder_stages(request.user.company, serializer.validated_data['stageIds'],
                                         user=request.user)
    except services.InvalidStageOrder as e:
        return Response(error_response_body(str(e)), status=status.HTTP_400_BAD_REQUEST)
    return Response(StageSerializer(stages, many=True).data)


# Card views
@api_view(['POST'])
@permission_classes([IsAuthenticated, HasCompany])
def card_create(request):
    """Create a lead in the given stage"""
    if not request.data.get('title') or not request.data.get('stageId'):
        return Response(error_response_body('Title and stage are required'), status=status.HTTP_400_BAD_REQUEST)

    serializer = CardSerializer(data=request.data, context={'company_id': request.user.company_id})
    if not serializer.is_valid():
        if 'stageId' in serializer.errors:
            return Response(error_response_body('Invalid stage'), status=status.HTTP_400_BAD_REQUEST)
        return Response(error_response_body('Invalid card data', serializer.errors),
                        status=status.HTTP_400_BAD_REQUEST)

    fields = dict(serializer.validated_data)
    stage = fields.pop('stage')
    try:
        card = services.create_card(request.user.company, stage, owner=request.user, **fields)
    except Exception:
        logger.exception("Error creating card")
        return Response(error_response_body('Failed to create card'), status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(CardSerializer(card).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasCompany])
def card_detail(request, pk):
    """Retrieve, update or delete a card"""
    card = _company_card(request, pk)
    if card is None:
        return Response(error_response_body('Card not found'), status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        return Response(CardSerializer(card).data)

    if request.method == 'PATCH':
        data = request.data.copy() if hasattr(request.data, 'copy') else dict(request.data)
        # Stage changes go through the move endpoint so ordering stays consistent
        data.pop('stageId', None)
        serializer = CardSerializer(card, data=data, partial=True,
                                    context={'company_id': request.user.company_id})
        if not serializer.is_valid():
            return Response(error_response_body('Invalid card data', serializer.errors),
                            status=status.HTTP_400_BAD_REQUEST)
        card = serializer.save()
        create_activity(company=card.company, type='card_updated', description=f"Updated lead: {card.title}",
                        user=request.user, card=card, metadata={'fields': sorted(data.keys())})
        return Response(CardSerializer(card).data)

    services.remove_card(card, user=request.user)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, HasCompany])
def card_move(request, pk):
    """Persist a drag-and-drop move: new stage and position within it"""
    serializer = CardMoveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(error_response_body('Invalid move', serializer.errors), status=status.HTTP_400_BAD_REQUEST)

    stage_id = serializer.validated_data.get('stageId')
    if not stage_id:
        return Response(error_response_body('Stage ID is required'), status=status.HTTP_400_BAD_REQUEST)

    card = _company_card(request, pk)
    if card is None:
        return Response(error_response_body('Card not found'), status=status.HTTP_404_NOT_FOUND)
    if card.status != Card.STATUS_ACTIVE:
        return Response(error_response_body('Cannot move an archived card'), status=status.HTTP_400_BAD_REQUEST)

    stage = _company_stage(request, stage_id)
    if stage is None:
        return Response(error_response_body('Invalid stage'), status=status.HTTP_400_BAD_REQUEST)

    try:
        card = services.move_card(card, stage, serializer.validated_data.get('order'), user=request.user)
    except Exception:
        logger.exception(f"Error moving card {pk}")
        return Response(error_response_body('Failed to move card'), status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(CardSerializer(card).data)
