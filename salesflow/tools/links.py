"""
Click-tracked purchase links.

Every purchase link sent to a customer goes through a redirect that
records the click against the conversation. Creating the redirect is
best effort: when the tracker fails, the raw destination URL is sent.
"""

import logging
import uuid
from typing import Any, Optional, Protocol

from salesflow.config import settings

logger = logging.getLogger(__name__)


class LinkTracker(Protocol):
    async def make_tracked_link(
        self, customer_id: str, destination_url: str, metadata: Optional[dict[str, Any]] = None
    ) -> str: ...


class InMemoryLinkTracker:
    """Issues short redirect URLs and keeps the mapping in memory."""

    def __init__(self, base_url: Optional[str] = None) -> None:
        self.base_url = (base_url or settings.links.tracker_base_url).rstrip("/")
        self.links: dict[str, dict[str, Any]] = {}
        self.fail = False

    async def make_tracked_link(
        self, customer_id: str, destination_url: str, metadata: Optional[dict[str, Any]] = None
    ) -> str:
        if self.fail:
            raise ConnectionError("link tracker unavailable")
        code = uuid.uuid4().hex[:8]
        self.links[code] = {
            "customer_id": customer_id,
            "destination": destination_url,
            "metadata": dict(metadata or {}),
            "clicks": 0,
        }
        return f"{self.base_url}/{code}"

    def resolve(self, code: str) -> Optional[str]:
        """Follow a redirect, counting the click."""
        record = self.links.get(code)
        if record is None:
            return None
        record["clicks"] += 1
        return record["destination"]


async def tracked_or_raw(
    tracker: LinkTracker, customer_id: str, url: str, metadata: Optional[dict[str, Any]] = None
) -> str:
    try:
        return await tracker.make_tracked_link(customer_id, url, metadata)
    except Exception as e:
        logger.warning("Link tracking failed, sending raw URL: %s", e)
        return url
