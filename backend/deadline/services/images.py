"""Image discovery through the Google Custom Search image API (best effort)."""

import httpx
from loguru import logger

from deadline.config import Settings, get_settings
from deadline.exceptions import ConfigurationError
from deadline.services.search import CUSTOM_SEARCH_URL, parse_json_body


MAX_IMAGES = 10
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
BLOCKED_FRAGMENTS = ("favicon", "/logo", "/icon")


def is_usable_image(link: str) -> bool:
    """Reject icons and logos; require something that looks like an image."""
    url = link.lower()
    if any(fragment in url for fragment in BLOCKED_FRAGMENTS):
        return False
    return any(ext in url for ext in IMAGE_EXTENSIONS) or "image" in url


class ImageSearchClient:
    """Finds representative images for an event query."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport

    async def search_images(self, query: str) -> list[str]:
        """Return up to MAX_IMAGES image URLs; never raises on transport errors."""
        api_key = self.settings.google_api_key
        engine_id = self.settings.google_search_engine_id
        if not api_key or not engine_id:
            raise ConfigurationError("Google API credentials not configured")

        params = {
            "key": api_key,
            "cx": engine_id,
            "q": query,
            "searchType": "image",
            "num": MAX_IMAGES,
            "safe": "active",
            "imgSize": "medium",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.search_timeout,
                transport=self.transport,
                headers={"Accept": "application/json"},
            ) as client:
                response = await client.get(CUSTOM_SEARCH_URL, params=params)
        except httpx.HTTPError as e:
            logger.warning(f"[IMAGES] Image search error: {e!r}")
            return []

        if not response.is_success:
            logger.warning(f"[IMAGES] Image search failed with status: {response.status_code}")
            return []

        data = parse_json_body(response.text)
        if data is None:
            logger.warning("[IMAGES] Invalid JSON response from image search")
            return []

        if data.get("error"):
            logger.warning(f"[IMAGES] Image search API error: {data['error']}")
            return []

        items = data.get("items")
        if not isinstance(items, list):
            logger.info("[IMAGES] No image items found in response")
            return []

        links = [item.get("link") for item in items if isinstance(item, dict)]
        images = [link for link in links if link and is_usable_image(link)][:MAX_IMAGES]

        logger.info(f"[IMAGES] Found {len(images)} valid image links")
        return images
