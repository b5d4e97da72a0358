import json

from conftest import KB, FakeOptimizationClient, optimized
from image_optimizer.services.content_store import RootKind
from image_optimizer.services.jobs import OPTIMIZATION_JOB, queue_optimization, run_optimization
from image_optimizer.services.orchestrator import ImageOptimizationJob, JobState


def add_image(store, name="a.png", size=2 * KB):
    root = store.get_root_folder(RootKind.GLOBAL_ASSETS)
    return store.add_image(root, name, b"i" * size, mime_type="image/png")


def test_queued_job_is_pending(session):
    job = queue_optimization(session)

    assert job.id is not None
    assert job.kind == OPTIMIZATION_JOB
    assert job.status == "pending"
    assert job.progress == 0


def test_completed_run_records_summary_and_statistics(session, store, ledger, config):
    add_image(store)
    runner = ImageOptimizationJob(store, FakeOptimizationClient(default=optimized(2 * KB, 1 * KB)), ledger, config)

    job = run_optimization(session, queue_optimization(session), runner)

    assert job.status == "completed"
    assert job.progress == 100
    assert job.message == "Job completed after optimizing: 1 images. Before: 2 KB, after: 1 KB."
    assert json.loads(job.result_json) == {"processed": 1, "bytes_before": 2 * KB, "bytes_after": 1 * KB}


def test_stopped_run_is_recorded_as_stopped(session, store, ledger, config):
    add_image(store)
    client = FakeOptimizationClient(default=optimized(2 * KB, 1 * KB))
    runner = ImageOptimizationJob(store, client, ledger, config)
    runner.stop()

    job = run_optimization(session, queue_optimization(session), runner)

    assert job.status == "stopped"
    assert client.calls == []


def test_crashed_run_is_recorded_as_failed(session, store, ledger, config):
    add_image(store)

    def explode(request):
        raise RuntimeError("client exploded")

    runner = ImageOptimizationJob(store, FakeOptimizationClient(default=explode), ledger, config)

    job = run_optimization(session, queue_optimization(session), runner)

    assert job.status == "failed"
    assert job.message == "client exploded"
    assert json.loads(job.result_json)["processed"] == 0
    assert runner.state == JobState.IDLE
