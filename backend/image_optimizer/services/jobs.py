from __future__ import annotations

import json
import logging
from datetime import datetime

from sqlmodel import Session

from image_optimizer.models.entities import Job
from image_optimizer.services.orchestrator import ImageOptimizationJob

logger = logging.getLogger(__name__)

OPTIMIZATION_JOB = "image_optimization"
PENDING = "pending"
RUNNING = "running"
FAILED = "failed"


def queue_optimization(session: Session) -> Job:
    job = Job(kind=OPTIMIZATION_JOB, status=PENDING, progress=0, message="Optimization queued")
    session.add(job)
    session.commit()
    session.refresh(job)
    return job


def run_optimization(session: Session, job: Job, runner: ImageOptimizationJob) -> Job:
    """Executes ``runner`` and records the outcome on ``job``.

    The job ends as ``completed`` or ``stopped`` with the run summary as message, or as
    ``failed`` when the run itself crashed. Statistics gathered so far are kept either way.
    """
    _record(session, job, RUNNING, 0, "Optimizing images")
    try:
        summary = runner.execute()
    except Exception as exc:
        logger.exception("Optimization job %s failed", job.id)
        session.rollback()
        return _record(session, job, FAILED, 100, str(exc), runner.statistics.as_dict())
    return _record(session, job, runner.state.value, 100, summary, runner.statistics.as_dict())


def _record(session: Session, job: Job, status: str, progress: int, message: str, result: dict | None = None) -> Job:
    job.status = status
    job.progress = progress
    job.message = message
    if result is not None:
        job.result_json = json.dumps(result)
    job.updated_at = datetime.utcnow()
    session.add(job)
    session.commit()
    session.refresh(job)
    return job
