from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class OptimizationRequest(BaseModel):
    image_url: str


class OptimizationResponse(BaseModel):
    successful: bool
    original_url: str
    original_size: int = 0
    optimized_size: int = 0
    optimized_image: Optional[bytes] = None
    error_message: str = ""

    @property
    def percent_saved(self) -> float:
        if self.original_size <= 0 or self.optimized_size <= 0:
            return 0.0
        return round((self.original_size - self.optimized_size) * 100 / self.original_size, 2)

    @classmethod
    def failure(cls, original_url: str, error_message: str) -> "OptimizationResponse":
        return cls(successful=False, original_url=original_url, error_message=error_message)


class FolderCreateRequest(BaseModel):
    parent_id: int
    name: str = Field(min_length=1, max_length=128, pattern=r"^[^/]+$")


class FolderResponse(BaseModel):
    id: int
    name: str
    parent_id: Optional[int] = None
    root_kind: Optional[str] = None


class AssetResponse(BaseModel):
    guid: str
    name: str
    url_path: str
    locator: str
    mime_type: str
    size_bytes: int
    status: str
    deleted: bool
    version: int


class FolderChildrenResponse(BaseModel):
    folder: FolderResponse
    folders: List[FolderResponse] = Field(default_factory=list)
    images: List[AssetResponse] = Field(default_factory=list)


class LedgerEntryResponse(BaseModel):
    content_guid: str
    image_url: str
    original_size: int
    optimized_size: int
    percent_saved: float
    is_optimized: bool
    created_at: datetime
    updated_at: datetime


class RunStartedResponse(BaseModel):
    job_id: int
    status: str


class StopResponse(BaseModel):
    stopping: bool
    job_id: Optional[int] = None


class JobResponse(BaseModel):
    id: int
    kind: str
    status: str
    progress: int
    message: str
    result: Dict[str, Any]
