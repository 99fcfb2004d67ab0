"""Front end cache invalidation (best effort, never undoes persistence)."""

import httpx
from loguru import logger

from deadline.config import Settings, get_settings


EVENTS_LIST_TAG = "events-list"
REVALIDATE_PATH = "/api/internal/revalidate"


def event_tags(event_id: int) -> list[str]:
    """Cache tags covering an event page, its details and its updates."""
    return [f"event-{event_id}", f"event-details-{event_id}", f"event-updates-{event_id}"]


class CacheRevalidator:
    """Posts cache tags to the front end's revalidation endpoint."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport

    async def revalidate(self, tags: list[str]) -> bool:
        """Send `tags` for revalidation. Returns False on any failure."""
        base_url = self.settings.frontend_base_url
        if not base_url:
            logger.debug("[REVALIDATE] FRONTEND_BASE_URL not set, skipping")
            return False

        url = f"{base_url.rstrip('/')}{REVALIDATE_PATH}"
        headers = {}
        if self.settings.api_secret_key:
            headers["x-api-key"] = self.settings.api_secret_key

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.revalidate_timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(url, json={"tags": tags}, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"[REVALIDATE] Request failed for {tags}: {e!r}")
            return False

        if not response.is_success:
            logger.warning(f"[REVALIDATE] Failed for {tags}: {response.status_code}")
            return False

        logger.info(f"[REVALIDATE] Revalidated tags: {', '.join(tags)}")
        return True

    async def revalidate_event(self, event_id: int, include_main: bool = False) -> bool:
        tags = event_tags(event_id)
        if include_main:
            tags.append(EVENTS_LIST_TAG)
        return await self.revalidate(tags)
