"""
Stage and card ordering on the server.

Stage ``order`` values are unique and contiguous per company, card ``order``
values are contiguous (0..n-1) per stage among ACTIVE cards. Every function
that changes positions runs in one transaction and locks the rows it
renumbers; concurrent writers resolve last-write-wins.
"""
import logging

from django.db import transaction
from django.db.models import Max

from buildflow.core.utils import create_activity
from .cache import invalidate_board_cache_on_commit
from .cache_signals import suspend_cache_signals
from .models import Stage, Card

logger = logging.getLogger(__name__)

DEFAULT_STAGES = [
    ('New Lead', '#3b82f6'),
    ('Contacted', '#8b5cf6'),
    ('Qualified', '#ec4899'),
    ('Proposal', '#f59e0b'),
    ('Negotiation', '#84cc16'),
    ('Won', '#10b981'),
]


class StageNotEmpty(Exception):
    """Stage still owns active cards"""


class InvalidStageOrder(ValueError):
    """Reorder request is not a permutation of the company's stages"""


def create_default_stages(company):
    """Seed a new company's pipeline"""
    stages = Stage.objects.bulk_create([
        Stage(company=company, name=name, color=color, order=index)
        for index, (name, color) in enumerate(DEFAULT_STAGES)
    ])
    invalidate_board_cache_on_commit(company.id)
    return stages


def active_cards(stage_id):
    return Card.objects.filter(stage_id=stage_id, status=Card.STATUS_ACTIVE)


def next_stage_order(company):
    max_order = Stage.objects.filter(company=company).aggregate(max_order=Max('order'))['max_order']
    return 0 if max_order is None else max_order + 1


def create_stage(company, name, color, user=None):
    stage = Stage.objects.create(
        company=company,
        name=name.strip(),
        color=color,
        order=next_stage_order(company),
    )
    create_activity(company=company, type='stage_created', description=f"Created stage {stage.name}", user=user)
    return stage


def update_stage(stage, name, color=None, user=None):
    old_name = stage.name
    stage.name = name.strip()
    if color:
        stage.color = color
    stage.save()
    if old_name != stage.name:
        create_activity(company=stage.company, type='stage_updated',
                        description=f"Renamed stage {old_name} to {stage.name}", user=user)
    return stage


def _write_orders(items):
    """Set ``order`` to list position, saving only rows whose order changed"""
    changed = []
    for index, item in enumerate(items):
        if item.order != index:
            item.order = index
            changed.append(item)
    if changed:
        type(changed[0]).objects.bulk_update(changed, ['order'])
    return changed


def renumber_stage_cards(stage_id):
    """Close gaps in a stage's active card ordering"""
    with transaction.atomic():
        cards = list(active_cards(stage_id).select_for_update().order_by('order', 'id'))
        return _write_orders(cards)


def append_order(stage_id):
    return active_cards(stage_id).count()


def create_card(company, stage, owner=None, **fields):
    with transaction.atomic():
        card = Card.objects.create(
            company=company,
            stage=stage,
            owner=owner,
            order=append_order(stage.id),
            **fields,
        )
        create_activity(company=company, type='card_created',
                        description=f"Created new lead: {card.title}", user=owner, card=card)
    return card


@transaction.atomic
def move_card(card, stage, order=None, user=None):
    """
    Relocate ``card`` into ``stage`` at position ``order``.

    ``order`` defaults to the end of the destination and is clamped to
    ``[0, len(destination)]``. Source and destination stages are renumbered
    0..n-1 afterwards, so list position and ``order`` always agree.

    The card row is re-read under lock, so a caller holding a stale instance
    moves the card from wherever it currently is (last write wins).
    Only ACTIVE cards take part in the ordering; callers reject archived ones.
    """
    current = Card.objects.select_for_update().get(pk=card.pk)
    if current.status != Card.STATUS_ACTIVE:
        raise ValueError(f"Card {card.pk} is not active")
    source_stage_id = current.stage_id
    stage_ids = {source_stage_id, stage.id}

    with suspend_cache_signals():
        locked = list(
            Card.objects.select_for_update()
            .filter(stage_id__in=stage_ids, status=Card.STATUS_ACTIVE)
            .order_by('order', 'id')
        )
        source = [c for c in locked if c.stage_id == source_stage_id and c.pk != card.pk]
        if stage.id == source_stage_id:
            destination = source
        else:
            destination = [c for c in locked if c.stage_id == stage.id]

        moving = next(c for c in locked if c.pk == card.pk)

        if order is None or order > len(destination):
            order = len(destination)
        destination.insert(order, moving)

        if moving.stage_id != stage.id:
            moving.stage = stage
            moving.save(update_fields=['stage', 'updated_at'])

        _write_orders(destination)
        if destination is not source:
            _write_orders(source)

    invalidate_board_cache_on_commit(card.company_id)

    old_stage_name = Stage.objects.filter(pk=source_stage_id).values_list('name', flat=True).first()
    create_activity(
        company=card.company,
        type='card_moved',
        description=f"Moved card from {old_stage_name} to {stage.name}",
        user=user,
        card=moving,
        metadata={'from_stage': source_stage_id, 'to_stage': stage.id, 'order': order},
    )
    logger.info(f"Card {moving.pk} moved from stage {source_stage_id} to {stage.id} at position {order}")

    moving.refresh_from_db()
    return moving


@transaction.atomic
def remove_card(card, user=None):
    """Delete a card and close the gap it leaves in its stage"""
    stage_id = card.stage_id
    title = card.title
    company = card.company
    card.delete()
    renumber_stage_cards(stage_id)
    invalidate_board_cache_on_commit(company.id)
    create_activity(company=company, type='card_deleted', description=f"Deleted lead: {title}", user=user)


@transaction.atomic
def delete_stage(stage, user=None):
    """
    Delete an empty stage and renumber the remaining columns.

    Raises StageNotEmpty while the stage owns active cards.
    """
    locked = Stage.objects.select_for_update().get(pk=stage.pk)
    if active_cards(locked.pk).exists():
        raise StageNotEmpty('Cannot delete stage with active cards. Move cards first.')

    company = locked.company
    name = locked.name
    with suspend_cache_signals():
        locked.delete()
        remaining = list(Stage.objects.select_for_update().filter(company=company).order_by('order', 'id'))
        _write_orders(remaining)
    invalidate_board_cache_on_commit(company.id)
    create_activity(company=company, type='stage_deleted', description=f"Deleted stage {name}", user=user)


@transaction.atomic
def reorder_stages(company, stage_ids, user=None):
    """Rewrite stage ``order`` to match the given id sequence"""
    stages = {s.pk: s for s in Stage.objects.select_for_update().filter(company=company)}
    try:
        requested = [int(pk) for pk in stage_ids]
    except (TypeError, ValueError):
        raise InvalidStageOrder('stageIds must be a list of stage ids')
    if len(requested) != len(stages) or set(requested) != set(stages):
        raise InvalidStageOrder('stageIds must list every stage of the company exactly once')

    ordered = [stages[pk] for pk in requested]
    with suspend_cache_signals():
        _write_orders(ordered)
    invalidate_board_cache_on_commit(company.id)
    create_activity(company=company, type='stages_reordered',
                    description=f"Reordered stages: {', '.join(s.name for s in ordered)}", user=user)
    return ordered
