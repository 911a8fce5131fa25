"""Pexels API client: stock-photo artwork for session words."""

import aiohttp
import structlog
from typing import List

from .config import PEXELS_API_KEY

log = structlog.get_logger()

PEXELS_SEARCH_URL = "https://api.pexels.com/v1/search"
MAX_QUERY_WORDS = 8


def build_query(prompt: str) -> str:
    """Shorten an image-generation prompt into a stock-photo search query."""
    words = prompt.replace(",", " ").replace(";", " ").split()
    return " ".join(words[:MAX_QUERY_WORDS])


async def search_pexels_images(prompt: str, count: int = 1) -> List[str]:
    """Search Pexels for images matching ``prompt`` and return their URLs."""
    if not PEXELS_API_KEY:
        log.warning("Pexels API key not configured, skipping image search")
        return []

    headers = {
        "Authorization": PEXELS_API_KEY
    }

    params = {
        "query": build_query(prompt),
        "per_page": count,
        "orientation": "landscape",
        "size": "large"
    }

    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(PEXELS_SEARCH_URL, headers=headers, params=params) as response:
                if response.status != 200:
                    log.error("Pexels API request failed", status=response.status)
                    return []

                data = await response.json()
                image_urls = []
                for photo in data.get("photos", [])[:count]:
                    src = photo.get("src", {})
                    url = src.get("large", src.get("medium", src.get("original")))
                    if url:
                        image_urls.append(url)

                log.info("Pexels search completed", query=params["query"], found=len(image_urls))
                return image_urls

    except aiohttp.ClientError as e:
        log.error("Pexels search failed", error=str(e), query=params["query"])
        return []
