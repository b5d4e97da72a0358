from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

PUBLISHED = "published"
DRAFT = "draft"


class ContentFolder(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    parent_id: Optional[int] = Field(default=None, foreign_key="contentfolder.id", index=True)
    root_kind: Optional[str] = Field(default=None, index=True, unique=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ImageAsset(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    guid: str = Field(index=True, unique=True)
    folder_id: int = Field(foreign_key="contentfolder.id", index=True)
    name: str
    url_path: str = Field(index=True, unique=True)
    mime_type: str
    blob_path: str
    size_bytes: int
    status: str = PUBLISHED
    deleted: bool = False
    version: int = 1
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_published(self) -> bool:
        return self.status == PUBLISHED


class ImageLogEntry(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    content_guid: str = Field(index=True, unique=True)
    image_url: str = Field(default="", index=True)
    original_size: int = 0
    optimized_size: int = 0
    percent_saved: float = 0.0
    is_optimized: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Job(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    kind: str = Field(index=True)
    status: str = "pending"
    progress: int = 0
    message: str = ""
    result_json: str = "{}"
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
