from io import BytesIO

import pytest
from PIL import Image
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from image_optimizer.core.settings import Settings
from image_optimizer.schemas.contracts import OptimizationResponse
from image_optimizer.services.content_store import SqlContentStore
from image_optimizer.services.ledger import SqlLedger
from image_optimizer.services.optimizer import OptimizationClient

KB = 1024


def png_bytes(size=(16, 16), color="red") -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def optimized(original_size: int, optimized_size: int, payload: bytes | None = None):
    def respond(request):
        return OptimizationResponse(
            successful=True,
            original_url=request.image_url,
            original_size=original_size,
            optimized_size=optimized_size,
            optimized_image=payload if payload is not None else b"o" * max(optimized_size, 0),
        )

    return respond


def failed(message: str):
    def respond(request):
        return OptimizationResponse.failure(request.image_url, message)

    return respond


class FakeOptimizationClient(OptimizationClient):
    """Answers by image file name, the last segment of the locator."""

    def __init__(self, handlers=None, default=None):
        self.handlers = handlers or {}
        self.default = default
        self.calls: list[str] = []

    def process(self, request):
        self.calls.append(request.image_url)
        name = request.image_url.rsplit("/", 1)[-1]
        handler = self.handlers.get(name, self.default)
        return handler(request)


class CountingLedger(SqlLedger):
    def __init__(self, session):
        super().__init__(session)
        self.saves = 0

    def save(self, entry):
        self.saves += 1
        return super().save(entry)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def config(tmp_path) -> Settings:
    return Settings(_env_file=None, site_url="http://cms.test", blobs_dir=str(tmp_path / "blobs"))


@pytest.fixture
def store(session, config) -> SqlContentStore:
    store = SqlContentStore(session, config.blobs_dir)
    store.ensure_roots()
    return store


@pytest.fixture
def ledger(session) -> CountingLedger:
    return CountingLedger(session)
