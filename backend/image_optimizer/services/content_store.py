from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from image_optimizer.models.entities import DRAFT, PUBLISHED, ContentFolder, ImageAsset
from image_optimizer.utils.mime import default_extension, sniff_image_mime_type

logger = logging.getLogger(__name__)


class ContentStoreError(Exception):
    pass


class TraversalError(ContentStoreError):
    """Listing or resolving a folder failed."""


class PersistenceError(ContentStoreError):
    """Reading or writing an asset's binary content failed."""


class RootKind(str, Enum):
    GLOBAL_ASSETS = "globalassets"
    CONTENT_ASSETS = "contentassets"


class SaveAction(str, Enum):
    SAVE = "save"
    PUBLISH = "publish"


class AccessLevel(str, Enum):
    NO_ACCESS = "no_access"
    EDIT = "edit"


@dataclass
class AssetRevision:
    """Writable copy of an asset; nothing changes in the store until it is saved."""

    asset_id: int
    guid: str
    mime_type: str
    version: int
    binary: bytes = b""


def build_locator(site_url: str, asset: ImageAsset) -> str:
    return f"{site_url.rstrip('/')}/media/{quote(asset.url_path)}"


class ContentStore(ABC):
    @abstractmethod
    def get_root_folder(self, kind: RootKind) -> ContentFolder:
        raise NotImplementedError

    @abstractmethod
    def get_child_folders(self, folder: ContentFolder) -> list[ContentFolder]:
        raise NotImplementedError

    @abstractmethod
    def get_child_images(self, folder: ContentFolder) -> list[ImageAsset]:
        raise NotImplementedError

    @abstractmethod
    def read_binary(self, asset: ImageAsset) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def create_writable_revision(self, asset: ImageAsset) -> AssetRevision:
        raise NotImplementedError

    @abstractmethod
    def save(
        self,
        revision: AssetRevision,
        action: SaveAction = SaveAction.PUBLISH,
        access: AccessLevel = AccessLevel.NO_ACCESS,
    ) -> None:
        raise NotImplementedError


class SqlContentStore(ContentStore):
    """Folders and asset rows in the database, binaries as versioned files under ``blobs_dir``."""

    def __init__(self, session: Session, blobs_dir: str | Path):
        self.session = session
        self.blobs_dir = Path(blobs_dir)

    def ensure_roots(self) -> None:
        existing = set(self.session.exec(select(ContentFolder.root_kind).where(col(ContentFolder.root_kind).is_not(None))).all())
        for kind in RootKind:
            if kind.value not in existing:
                self.session.add(ContentFolder(name=kind.value, root_kind=kind.value))
        self.session.commit()

    def get_root_folder(self, kind: RootKind) -> ContentFolder:
        try:
            folder = self.session.exec(select(ContentFolder).where(ContentFolder.root_kind == kind.value)).first()
        except SQLAlchemyError as exc:
            raise TraversalError(f"Failed to load root folder {kind.value}: {exc}") from exc
        if folder is None:
            raise TraversalError(f"Root folder {kind.value} does not exist")
        return folder

    def get_folder(self, folder_id: int) -> ContentFolder | None:
        return self.session.get(ContentFolder, folder_id)

    def get_child_folders(self, folder: ContentFolder) -> list[ContentFolder]:
        try:
            statement = select(ContentFolder).where(ContentFolder.parent_id == folder.id).order_by(ContentFolder.id)
            return list(self.session.exec(statement).all())
        except SQLAlchemyError as exc:
            raise TraversalError(f"Failed to list folders of {folder.name}: {exc}") from exc

    def get_child_images(self, folder: ContentFolder) -> list[ImageAsset]:
        try:
            statement = select(ImageAsset).where(ImageAsset.folder_id == folder.id).order_by(ImageAsset.id)
            return list(self.session.exec(statement).all())
        except SQLAlchemyError as exc:
            raise TraversalError(f"Failed to list images of {folder.name}: {exc}") from exc

    def create_folder(self, parent: ContentFolder, name: str) -> ContentFolder:
        folder = ContentFolder(name=name, parent_id=parent.id)
        self.session.add(folder)
        self.session.commit()
        self.session.refresh(folder)
        return folder

    def add_image(
        self,
        folder: ContentFolder,
        name: str,
        raw: bytes,
        mime_type: str | None = None,
        published: bool = True,
    ) -> ImageAsset:
        mime_type = mime_type or sniff_image_mime_type(raw)
        guid = str(uuid.uuid4())
        blob_path = self._write_blob(guid, 1, mime_type, raw)
        asset = ImageAsset(
            guid=guid,
            folder_id=folder.id,
            name=name,
            url_path="/".join([*self._folder_path(folder), name]),
            mime_type=mime_type,
            blob_path=str(blob_path),
            size_bytes=len(raw),
            status=PUBLISHED if published else DRAFT,
        )
        self.session.add(asset)
        self.session.commit()
        self.session.refresh(asset)
        return asset

    def find_by_url_path(self, url_path: str) -> ImageAsset | None:
        return self.session.exec(select(ImageAsset).where(ImageAsset.url_path == url_path)).first()

    def find_by_guid(self, guid: str) -> ImageAsset | None:
        return self.session.exec(select(ImageAsset).where(ImageAsset.guid == guid)).first()

    def read_binary(self, asset: ImageAsset) -> bytes:
        try:
            return Path(asset.blob_path).read_bytes()
        except OSError as exc:
            raise PersistenceError(f"Failed to read binary of {asset.guid}: {exc}") from exc

    def create_writable_revision(self, asset: ImageAsset) -> AssetRevision:
        return AssetRevision(asset_id=asset.id, guid=asset.guid, mime_type=asset.mime_type, version=asset.version + 1)

    def save(
        self,
        revision: AssetRevision,
        action: SaveAction = SaveAction.PUBLISH,
        access: AccessLevel = AccessLevel.NO_ACCESS,
    ) -> None:
        # No ACLs in this store; every access level is treated as NO_ACCESS.
        try:
            asset = self.session.get(ImageAsset, revision.asset_id)
            if asset is None:
                raise PersistenceError(f"Asset {revision.guid} no longer exists")
            blob_path = self._write_blob(revision.guid, revision.version, revision.mime_type, revision.binary)
            asset.blob_path = str(blob_path)
            asset.size_bytes = len(revision.binary)
            asset.version = revision.version
            asset.updated_at = datetime.utcnow()
            if action == SaveAction.PUBLISH:
                asset.status = PUBLISHED
            self.session.add(asset)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(f"Failed to save {revision.guid}: {exc}") from exc
        logger.debug("Saved %s as version %s (%s)", revision.guid, revision.version, action.value)

    def _write_blob(self, guid: str, version: int, mime_type: str, raw: bytes) -> Path:
        path = self.blobs_dir / guid / f"{version}{default_extension(mime_type)}"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as f:
                f.write(raw)
        except OSError as exc:
            raise PersistenceError(f"Failed to write blob {path}: {exc}") from exc
        return path.resolve()

    def _folder_path(self, folder: ContentFolder) -> list[str]:
        names: list[str] = []
        current: ContentFolder | None = folder
        while current is not None:
            names.append(current.name)
            current = self.session.get(ContentFolder, current.parent_id) if current.parent_id else None
        return list(reversed(names))
