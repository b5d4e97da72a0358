"""Run the image optimization job once: ``python -m image_optimizer.cli``.

Scheduling is left to cron or whatever triggers the process. Ctrl+C (or SIGTERM)
asks the job to stop after the image currently being processed.
"""
from __future__ import annotations

import logging
import signal

from sqlmodel import Session

from image_optimizer.core.settings import ensure_directories, settings
from image_optimizer.db.session import engine, init_db
from image_optimizer.services.factory import build_optimization_job

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    ensure_directories()
    init_db()

    with Session(engine) as session:
        job = build_optimization_job(session, settings)

        def request_stop(signum, frame) -> None:
            logger.info("Received signal %s, stopping after the current image", signum)
            job.stop()

        signal.signal(signal.SIGINT, request_stop)
        signal.signal(signal.SIGTERM, request_stop)
        print(job.execute())


if __name__ == "__main__":
    main()
