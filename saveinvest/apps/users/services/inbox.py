"""The user's notification inbox."""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.core.paginator import Paginator

from saveinvest.apps.users.models import AppUser, Notification
from saveinvest.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def list_notifications(
    user: AppUser,
    kind: Optional[str] = None,
    is_read: Optional[bool] = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    """Newest first, with the unread count of the whole inbox."""
    if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"page must be positive and limit between 1 and {MAX_PAGE_SIZE}")

    qs = Notification.objects.filter(user=user)
    if kind:
        qs = qs.filter(kind=kind)
    if is_read is not None:
        qs = qs.filter(is_read=is_read)

    paginator = Paginator(qs.order_by("-created_at"), limit)
    return {
        "data": list(paginator.get_page(page).object_list) if page <= paginator.num_pages else [],
        "unread_count": Notification.objects.filter(user=user, is_read=False).count(),
        "pagination": {
            "total": paginator.count,
            "page": page,
            "limit": limit,
            "total_pages": paginator.num_pages if paginator.count else 0,
        },
    }


def mark_read(user: AppUser, notification_ids: Iterable) -> int:
    """Marks the given notifications read; ids of other users are ignored."""
    return Notification.objects.filter(
        user=user, pk__in=list(notification_ids), is_read=False
    ).update(is_read=True)


def mark_all_read(user: AppUser) -> int:
    count = Notification.objects.filter(user=user, is_read=False).update(is_read=True)
    logger.debug(f"Marked {count} notification(s) read for user {user.id}")
    return count


def delete_notification(user: AppUser, notification_id) -> None:
    deleted, _ = Notification.objects.filter(user=user, pk=notification_id).delete()
    if not deleted:
        raise NotFoundError("Notification not found")
