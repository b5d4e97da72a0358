from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from sqlmodel import Session, col, select

from image_optimizer.models.entities import ImageLogEntry


class Ledger(ABC):
    """Idempotency and audit store: one optimization record per asset."""

    @abstractmethod
    def lookup_by_id(self, asset_id: str) -> Optional[ImageLogEntry]:
        raise NotImplementedError

    @abstractmethod
    def lookup_by_locator(self, locator: str) -> Optional[ImageLogEntry]:
        raise NotImplementedError

    @abstractmethod
    def get_entry(self, entry_id: int) -> Optional[ImageLogEntry]:
        raise NotImplementedError

    @abstractmethod
    def save(self, entry: ImageLogEntry) -> int:
        raise NotImplementedError


class SqlLedger(Ledger):
    def __init__(self, session: Session):
        self.session = session

    def lookup_by_id(self, asset_id: str) -> Optional[ImageLogEntry]:
        return self.session.exec(select(ImageLogEntry).where(ImageLogEntry.content_guid == asset_id)).first()

    def lookup_by_locator(self, locator: str) -> Optional[ImageLogEntry]:
        return self.session.exec(select(ImageLogEntry).where(ImageLogEntry.image_url == locator)).first()

    def get_entry(self, entry_id: int) -> Optional[ImageLogEntry]:
        return self.session.get(ImageLogEntry, entry_id)

    def save(self, entry: ImageLogEntry) -> int:
        entry.updated_at = datetime.utcnow()
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry.id

    def list_entries(self, optimized: Optional[bool] = None, limit: int = 100) -> list[ImageLogEntry]:
        statement = select(ImageLogEntry)
        if optimized is not None:
            statement = statement.where(ImageLogEntry.is_optimized == optimized)
        statement = statement.order_by(col(ImageLogEntry.updated_at).desc()).limit(limit)
        return list(self.session.exec(statement).all())
