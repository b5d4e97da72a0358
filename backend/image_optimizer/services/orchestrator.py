from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Iterable, Iterator

from image_optimizer.core.settings import Settings
from image_optimizer.models.entities import ImageAsset, ImageLogEntry
from image_optimizer.schemas.contracts import OptimizationRequest, OptimizationResponse
from image_optimizer.services.content_store import (
    AccessLevel,
    ContentStore,
    ContentStoreError,
    SaveAction,
    build_locator,
)
from image_optimizer.services.ledger import Ledger
from image_optimizer.services.optimizer import OptimizationClient
from image_optimizer.services.walker import ContentTreeWalker, distinct_assets

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"


@dataclass
class RunStatistics:
    processed: int = 0
    bytes_before: int = 0
    bytes_after: int = 0

    def summary(self, stopped: bool = False) -> str:
        verb = "stopped" if stopped else "completed"
        return (
            f"Job {verb} after optimizing: {self.processed} images. "
            f"Before: {self.bytes_before // 1024} KB, after: {self.bytes_after // 1024} KB."
        )

    def as_dict(self) -> dict:
        return asdict(self)


class ImageOptimizationJob:
    """Sends every published image in the content tree through the optimization service once.

    Runs strictly one asset at a time. :meth:`stop` may be called from any thread; it is
    honoured before the run starts and between assets, never in the middle of a service
    call or a save.
    """

    def __init__(self, store: ContentStore, client: OptimizationClient, ledger: Ledger, settings: Settings):
        self.store = store
        self.client = client
        self.ledger = ledger
        self.settings = settings
        self.walker = ContentTreeWalker(store)
        self.state = JobState.IDLE
        self.statistics = RunStatistics()
        self._stop = threading.Event()

    def stop(self) -> None:
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def execute(self) -> str:
        if self.state == JobState.RUNNING:
            raise RuntimeError("Image optimization job is already running")
        self.state = JobState.RUNNING
        self.statistics = RunStatistics()
        try:
            return self._run()
        except Exception:
            self.state = JobState.IDLE
            raise

    def _run(self) -> str:
        candidates = self.candidates()
        if self.stop_requested:
            return self._finish(stopped=True)

        for image in candidates:
            if self.stop_requested:
                return self._finish(stopped=True)
            if not image.is_published or image.deleted:
                logger.debug("Skipping unpublished or deleted image %s", image.guid)
                continue
            self._optimize(image)

        return self._finish(stopped=False)

    def candidates(self) -> Iterator[ImageAsset]:
        roots = self.walker.root_folders(self.settings.include_content_assets)
        images: Iterable[ImageAsset] = distinct_assets(self.walker.walk(roots))
        if not self.settings.bypass_previously_optimized:
            images = self._filter_previously_optimized(images)
        return iter(images)

    def _filter_previously_optimized(self, images: Iterable[ImageAsset]) -> Iterator[ImageAsset]:
        # Entries left unoptimized by a failed attempt do not block a retry.
        for image in images:
            entry = self.ledger.lookup_by_id(image.guid)
            if entry is None or not entry.is_optimized:
                yield image

    def _optimize(self, image: ImageAsset) -> None:
        request = OptimizationRequest(image_url=build_locator(self.settings.site_url, image))
        response = self.client.process(request)
        entry_id = self._add_log_entry(response, image)

        if not response.successful:
            logger.error("Optimization of %s failed: %s", request.image_url, response.error_message)
            return

        if response.optimized_size > 0 and response.optimized_image:
            size_after = response.optimized_size
            content = response.optimized_image
        else:
            size_after = response.original_size
            content = None

        try:
            revision = self.store.create_writable_revision(image)
            revision.binary = content if content is not None else self.store.read_binary(image)
            self.store.save(revision, action=SaveAction.PUBLISH, access=AccessLevel.NO_ACCESS)
        except ContentStoreError as exc:
            logger.error("Saving optimized image %s failed: %s", image.guid, exc)
            return

        self._mark_optimized(entry_id)
        self.statistics.processed += 1
        self.statistics.bytes_before += response.original_size
        self.statistics.bytes_after += size_after
        logger.info("Optimized %s: %s -> %s bytes", request.image_url, response.original_size, size_after)

    def _add_log_entry(self, response: OptimizationResponse, image: ImageAsset) -> int:
        entry = (
            self.ledger.lookup_by_id(image.guid)
            or self.ledger.lookup_by_locator(response.original_url)
            or ImageLogEntry(content_guid=image.guid)
        )
        entry.content_guid = image.guid
        entry.original_size = response.original_size
        entry.optimized_size = response.optimized_size
        entry.percent_saved = response.percent_saved
        entry.image_url = response.original_url
        return self.ledger.save(entry)

    def _mark_optimized(self, entry_id: int) -> None:
        entry = self.ledger.get_entry(entry_id)
        if entry is None:
            logger.warning("Ledger entry %s disappeared before it could be marked optimized", entry_id)
            return
        entry.is_optimized = True
        self.ledger.save(entry)

    def _finish(self, stopped: bool) -> str:
        self.state = JobState.STOPPED if stopped else JobState.COMPLETED
        summary = self.statistics.summary(stopped=stopped)
        logger.info(summary)
        return summary
