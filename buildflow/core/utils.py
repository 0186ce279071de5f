"""Utility functions for the company activity feed"""
import logging

from .models import Activity

logger = logging.getLogger(__name__)


def create_activity(company=None, type=None, description=None, user=None, card=None, metadata=None):
    """
    Create an activity feed entry

    Args:
        company: Company the activity belongs to (defaults to the card's or user's company)
        type: Activity type (card_created, card_moved, low_stock_alert, ...)
        description: Human-readable sentence shown in the feed
        user: Acting user, if any
        card: Card the activity refers to, if any
        metadata: Extra JSON-serialisable details
    """
    if company is None:
        company = getattr(card, 'company', None) or getattr(user, 'company', None)

    if not company or not type or not description:
        logger.warning(f"Activity creation skipped: missing required fields (company={company}, type={type})")
        return None

    return Activity.objects.create(
        company=company,
        user=user if user is not None and user.is_authenticated else None,
        card=card,
        type=type,
        description=description,
        metadata=metadata or {},
    )


def error_response_body(message, details=None):
    """JSON body used for every handled API error"""
    body = {'error': message}
    if details:
        body['details'] = details
    return body
