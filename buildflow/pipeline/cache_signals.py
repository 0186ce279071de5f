"""
Cache invalidation signals
Invalidate the board cache once a stage or card change commits
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import threading
from contextlib import contextmanager

from .cache import invalidate_board_cache_on_commit
from .models import Stage, Card

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Temporarily suspend board cache invalidation signals.
    Used by bulk renumbering so a single invalidation follows the whole block.
    """
    previous = is_suspended()
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = previous


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


@receiver([post_save, post_delete], sender=Stage)
def invalidate_board_on_stage_change(sender, instance, **kwargs):
    if is_suspended():
        return
    invalidate_board_cache_on_commit(instance.company_id)


@receiver([post_save, post_delete], sender=Card)
def invalidate_board_on_card_change(sender, instance, **kwargs):
    if is_suspended():
        return
    invalidate_board_cache_on_commit(instance.company_id)
