from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from sqlmodel import Session

from image_optimizer.core.settings import Settings, get_settings
from image_optimizer.db.session import get_session
from image_optimizer.models.entities import ContentFolder, ImageAsset, ImageLogEntry, Job
from image_optimizer.schemas.contracts import (
    AssetResponse,
    FolderChildrenResponse,
    FolderCreateRequest,
    FolderResponse,
    JobResponse,
    LedgerEntryResponse,
    RunStartedResponse,
    StopResponse,
)
from image_optimizer.services.content_store import RootKind, SqlContentStore, TraversalError, build_locator
from image_optimizer.services.factory import build_client, build_optimization_job
from image_optimizer.services.jobs import queue_optimization, run_optimization
from image_optimizer.services.ledger import SqlLedger
from image_optimizer.services.optimizer import OptimizationClient
from image_optimizer.services.orchestrator import ImageOptimizationJob

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])
media_router = APIRouter(tags=["media"])

_active_runs: dict[int, ImageOptimizationJob] = {}
_runs_lock = threading.Lock()


def get_optimization_client(config: Settings = Depends(get_settings)) -> OptimizationClient:
    return build_client(config)


def _folder_response(folder: ContentFolder) -> FolderResponse:
    return FolderResponse(id=folder.id, name=folder.name, parent_id=folder.parent_id, root_kind=folder.root_kind)


def _asset_response(asset: ImageAsset, config: Settings) -> AssetResponse:
    return AssetResponse(
        guid=asset.guid,
        name=asset.name,
        url_path=asset.url_path,
        locator=build_locator(config.site_url, asset),
        mime_type=asset.mime_type,
        size_bytes=asset.size_bytes,
        status=asset.status,
        deleted=asset.deleted,
        version=asset.version,
    )


def _ledger_response(entry: ImageLogEntry) -> LedgerEntryResponse:
    return LedgerEntryResponse(
        content_guid=entry.content_guid,
        image_url=entry.image_url,
        original_size=entry.original_size,
        optimized_size=entry.optimized_size,
        percent_saved=entry.percent_saved,
        is_optimized=entry.is_optimized,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


def _get_folder_or_404(store: SqlContentStore, folder_id: int) -> ContentFolder:
    folder = store.get_folder(folder_id)
    if not folder:
        raise HTTPException(404, "Folder not found")
    return folder


@router.get("/folders/roots", response_model=list[FolderResponse])
def list_roots(session: Session = Depends(get_session), config: Settings = Depends(get_settings)):
    store = SqlContentStore(session, config.blobs_dir)
    roots = []
    for kind in RootKind:
        try:
            roots.append(_folder_response(store.get_root_folder(kind)))
        except TraversalError:
            continue
    return roots


@router.post("/folders", response_model=FolderResponse)
def create_folder(req: FolderCreateRequest, session: Session = Depends(get_session), config: Settings = Depends(get_settings)):
    store = SqlContentStore(session, config.blobs_dir)
    parent = _get_folder_or_404(store, req.parent_id)
    if any(child.name == req.name for child in store.get_child_folders(parent)):
        raise HTTPException(409, "Folder already exists")
    return _folder_response(store.create_folder(parent, req.name))


@router.get("/folders/{folder_id}/children", response_model=FolderChildrenResponse)
def folder_children(folder_id: int, session: Session = Depends(get_session), config: Settings = Depends(get_settings)):
    store = SqlContentStore(session, config.blobs_dir)
    folder = _get_folder_or_404(store, folder_id)
    return FolderChildrenResponse(
        folder=_folder_response(folder),
        folders=[_folder_response(f) for f in store.get_child_folders(folder)],
        images=[_asset_response(a, config) for a in store.get_child_images(folder)],
    )


@router.post("/folders/{folder_id}/images", response_model=AssetResponse)
def upload_image(
    folder_id: int,
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
    config: Settings = Depends(get_settings),
):
    store = SqlContentStore(session, config.blobs_dir)
    folder = _get_folder_or_404(store, folder_id)
    raw = file.file.read()
    if not raw:
        raise HTTPException(status_code=400, detail="Empty file")
    name = Path(file.filename or "").name
    if not name:
        raise HTTPException(status_code=400, detail="Missing file name")
    if any(image.name == name for image in store.get_child_images(folder)):
        raise HTTPException(status_code=409, detail="Image already exists in folder")
    try:
        asset = store.add_image(folder, name, raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _asset_response(asset, config)


@router.get("/assets/{guid}", response_model=AssetResponse)
def get_asset(guid: str, session: Session = Depends(get_session), config: Settings = Depends(get_settings)):
    asset = SqlContentStore(session, config.blobs_dir).find_by_guid(guid)
    if not asset:
        raise HTTPException(404, "Asset not found")
    return _asset_response(asset, config)


@router.post("/optimization/run", response_model=RunStartedResponse)
def start_optimization(
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    config: Settings = Depends(get_settings),
    client: OptimizationClient = Depends(get_optimization_client),
):
    with _runs_lock:
        if _active_runs:
            raise HTTPException(409, "An optimization run is already active")
        job = queue_optimization(session)
        run_session = Session(session.get_bind())
        runner = build_optimization_job(run_session, config, client=client)
        _active_runs[job.id] = runner
    background_tasks.add_task(_run_optimization, job.id, runner, run_session)
    return RunStartedResponse(job_id=job.id, status=job.status)


def _run_optimization(job_id: int, runner: ImageOptimizationJob, run_session: Session) -> None:
    try:
        run_optimization(run_session, run_session.get(Job, job_id), runner)
    finally:
        with _runs_lock:
            _active_runs.pop(job_id, None)
        run_session.close()


@router.post("/optimization/stop", response_model=StopResponse)
def stop_optimization():
    with _runs_lock:
        if not _active_runs:
            return StopResponse(stopping=False)
        job_id, runner = next(iter(_active_runs.items()))
        runner.stop()
        logger.info("Stop requested for optimization job %s", job_id)
    return StopResponse(stopping=True, job_id=job_id)


@router.get("/jobs/{job_id}", response_model=JobResponse)
def get_job(job_id: int, session: Session = Depends(get_session)):
    job = session.get(Job, job_id)
    if not job:
        raise HTTPException(404, "Job not found")
    return JobResponse(
        id=job.id,
        kind=job.kind,
        status=job.status,
        progress=job.progress,
        message=job.message,
        result=json.loads(job.result_json or "{}"),
    )


@router.get("/ledger", response_model=list[LedgerEntryResponse])
def list_ledger(
    optimized: Optional[bool] = None,
    limit: int = Query(100, ge=1, le=1000),
    session: Session = Depends(get_session),
):
    return [_ledger_response(e) for e in SqlLedger(session).list_entries(optimized=optimized, limit=limit)]


@router.get("/ledger/{content_guid}", response_model=LedgerEntryResponse)
def get_ledger_entry(content_guid: str, session: Session = Depends(get_session)):
    entry = SqlLedger(session).lookup_by_id(content_guid)
    if not entry:
        raise HTTPException(404, "No ledger entry for this asset")
    return _ledger_response(entry)


@media_router.get("/media/{url_path:path}")
def serve_media(url_path: str, session: Session = Depends(get_session), config: Settings = Depends(get_settings)):
    asset = SqlContentStore(session, config.blobs_dir).find_by_url_path(url_path)
    if not asset or asset.deleted or not asset.is_published:
        raise HTTPException(404, "Image not found")
    return FileResponse(asset.blob_path, media_type=asset.mime_type)
