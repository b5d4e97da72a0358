from sqlmodel import Session, SQLModel, create_engine

from image_optimizer.core.settings import settings
from image_optimizer.services.content_store import SqlContentStore

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, connect_args=connect_args)


def init_db() -> None:
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        SqlContentStore(session, settings.blobs_dir).ensure_roots()


def get_session():
    with Session(engine) as session:
        yield session
