"""Artwork fetching for the words of a learning session."""

import asyncio
import base64
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

import structlog

from .config import IMAGE_PROVIDER
from .models import WordEntry
from .openai_client import generate_image
from .pexels_client import search_pexels_images

log = structlog.get_logger()

ImageFetch = Callable[[str], Awaitable[Optional[str]]]


async def fetch_image(prompt: str) -> Optional[str]:
    """Produce an image reference for ``prompt``, or None when no image could be made.

    Never raises: every provider failure resolves to None.
    """
    try:
        if IMAGE_PROVIDER == "pexels":
            urls = await search_pexels_images(prompt, count=1)
            return urls[0] if urls else None

        png_bytes = await generate_image(prompt)
        return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")
    except Exception as e:
        log.warning("Image fetch failed", provider=IMAGE_PROVIDER, error=str(e))
        return None


class ArtifactMap:
    """Sparse mapping from word index to a loaded image reference.

    An absent index means the image is still loading or will never load.
    """

    def __init__(self):
        self._items: Dict[int, str] = {}

    def set(self, index: int, reference: str):
        self._items[index] = reference

    def get(self, index: int) -> Optional[str]:
        return self._items.get(index)

    def clear(self):
        self._items.clear()

    def snapshot(self) -> Dict[int, str]:
        return dict(self._items)

    def __contains__(self, index) -> bool:
        return index in self._items

    def __len__(self) -> int:
        return len(self._items)


class ImageFetchOrchestrator:
    """Issues one independent artwork request per word and merges results as they land.

    Every ``fetch_all`` call starts a new batch identified by a generation
    number. Results from a batch that is no longer current are discarded, so
    a replaced or reset session never receives artwork meant for its
    predecessor.
    """

    def __init__(self, artifacts: ArtifactMap, fetcher: ImageFetch = fetch_image):
        self.artifacts = artifacts
        self._fetcher = fetcher
        self._generation = 0
        self._tasks: List[asyncio.Task] = []
        self._in_flight = set()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> int:
        """Unfinished requests of the current batch."""
        return sum(1 for task in self._tasks if not task.done())

    def invalidate(self) -> int:
        """Supersede the current batch without issuing new requests."""
        self._generation += 1
        self._tasks = []
        log.debug("Artwork batch invalidated", generation=self._generation)
        return self._generation

    def fetch_all(self, words: Sequence[WordEntry], skip: Iterable[int] = ()) -> List[asyncio.Task]:
        """Start one request per word and return without waiting for any of them.

        Must be called from a running event loop.
        """
        generation = self.invalidate()
        skipped = set(skip)
        loop = asyncio.get_running_loop()

        for index, entry in enumerate(words):
            if index in skipped:
                continue
            if not entry.visual_prompt:
                log.info("No visual prompt available", word=entry.word, index=index)
                continue
            task = loop.create_task(self._fetch_one(generation, index, entry))
            self._tasks.append(task)
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

        log.info("Artwork batch started", generation=generation, requests=len(self._tasks))
        return list(self._tasks)

    async def join(self):
        """Wait for every request of the current batch to settle."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _fetch_one(self, generation: int, index: int, entry: WordEntry):
        try:
            reference = await self._fetcher(entry.visual_prompt)
        except Exception as e:
            log.warning("Artwork unavailable", word=entry.word, index=index, error=str(e))
            return
        if not reference:
            log.warning("Artwork unavailable", word=entry.word, index=index)
            return

        if generation != self._generation:
            log.debug("Discarding artwork from superseded batch",
                      index=index, generation=generation, current=self._generation)
            return

        self.artifacts.set(index, reference)
        log.info("Artwork loaded", word=entry.word, index=index, generation=generation)
