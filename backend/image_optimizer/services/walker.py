from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Iterator

from image_optimizer.models.entities import ContentFolder, ImageAsset
from image_optimizer.services.content_store import ContentStore, RootKind, TraversalError

logger = logging.getLogger(__name__)


class ContentTreeWalker:
    """Breadth-first walk over the content store yielding image assets lazily.

    A folder that cannot be listed is logged and skipped; the walk goes on with
    the rest of the queue. Every call to :meth:`walk` starts from scratch.
    """

    def __init__(self, store: ContentStore):
        self.store = store

    def root_folders(self, include_content_assets: bool = False) -> list[ContentFolder]:
        kinds = [RootKind.GLOBAL_ASSETS]
        if include_content_assets:
            kinds.append(RootKind.CONTENT_ASSETS)
        roots: list[ContentFolder] = []
        for kind in kinds:
            try:
                roots.append(self.store.get_root_folder(kind))
            except TraversalError as exc:
                logger.error("Skipping root %s: %s", kind.value, exc)
        return roots

    def walk(self, roots: Iterable[ContentFolder]) -> Iterator[ImageAsset]:
        queue = deque(roots)
        while queue:
            folder = queue.popleft()
            try:
                queue.extend(self.store.get_child_folders(folder))
            except TraversalError as exc:
                logger.error(str(exc))
            try:
                images = self.store.get_child_images(folder)
            except TraversalError as exc:
                logger.error(str(exc))
                continue
            yield from images


def distinct_assets(assets: Iterable[ImageAsset]) -> Iterator[ImageAsset]:
    seen: set[str] = set()
    for asset in assets:
        if asset.guid in seen:
            continue
        seen.add(asset.guid)
        yield asset
