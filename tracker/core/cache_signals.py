"""
Cache invalidation signals
Automatically invalidate cached reports when tracked data changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_reports_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()

TRACKED_MODELS = {
    'projects.Project',
    'resources.Resource',
    'resources.ResourceAllocation',
    'milestones.Milestone',
    'financial.Expense',
    'financial.Invoice',
}


@contextmanager
def suspend_cache_signals():
    """
    Temporarily suspend cache invalidation signals for bulk loads.
    The reports cache is invalidated once when the block exits.
    """
    previous = is_suspended()
    _thread_locals.suspended = True
    try:
        yield
    finally:
        _thread_locals.suspended = previous
        if not previous:
            invalidate_reports_cache()


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def _is_tracked(sender):
    return sender._meta.label in TRACKED_MODELS


@receiver(post_save)
def invalidate_on_save(sender, instance, **kwargs):
    if is_suspended() or not _is_tracked(sender):
        return
    logger.debug(f"{sender._meta.label} #{instance.pk} saved, invalidating reports cache")
    invalidate_reports_cache()


@receiver(post_delete)
def invalidate_on_delete(sender, instance, **kwargs):
    if is_suspended() or not _is_tracked(sender):
        return
    logger.debug(f"{sender._meta.label} #{instance.pk} deleted, invalidating reports cache")
    invalidate_reports_cache()
