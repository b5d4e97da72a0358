from __future__ import annotations

from typing import Optional

from sqlmodel import Session

from image_optimizer.core.settings import Settings, settings
from image_optimizer.services.content_store import SqlContentStore
from image_optimizer.services.ledger import SqlLedger
from image_optimizer.services.optimizer import OptimizationClient, ReSmushClient
from image_optimizer.services.orchestrator import ImageOptimizationJob


def build_client(config: Settings = settings) -> OptimizationClient:
    return ReSmushClient(
        endpoint=config.optimization_endpoint,
        timeout_s=config.request_timeout_s,
        user_agent=config.user_agent,
    )


def build_optimization_job(
    session: Session,
    config: Settings = settings,
    client: Optional[OptimizationClient] = None,
) -> ImageOptimizationJob:
    return ImageOptimizationJob(
        store=SqlContentStore(session, config.blobs_dir),
        client=client or build_client(config),
        ledger=SqlLedger(session),
        settings=config,
    )
