import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from image_optimizer.api.routes import media_router, router
from image_optimizer.core.settings import ensure_directories, settings
from image_optimizer.db.session import init_db

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup() -> None:
    ensure_directories()
    init_db()


app.include_router(router)
app.include_router(media_router)


@app.get("/")
def health():
    return {"ok": True, "service": settings.app_name}
