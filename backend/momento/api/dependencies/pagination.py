"""
Pagination dependencies
"""
from fastapi import Query
from typing import Optional

from momento.db.models.enums import NotificationStatus
from momento.db.schemas.notification import FeedParams


async def get_feed_params(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    status: Optional[NotificationStatus] = Query(None, description="Filter by read status")
) -> FeedParams:
    """
    Feed pagination dependency

    Args:
        page: Page number (1-indexed)
        limit: Number of items per page
        status: Optional unread/read filter

    Returns:
        FeedParams instance
    """
    return FeedParams(page=page, limit=limit, status=status)
