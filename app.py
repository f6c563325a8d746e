"""
Gallery – self-hosted photo gallery (FastAPI + SQLite)

Quick start
-----------
1) python -m venv .venv && source .venv/bin/activate
2) pip install -e .
3) GALLERY_IMAGES_DIRS=/path/to/photos python app.py
4) Open http://localhost:8001 → "Index new files"

Notes
-----
• Image records are stored in ./gallery.db (override with GALLERY_DB_PATH).
• Images are identified by the SHA-256 of their bytes, so re-indexing is
  idempotent; "Re-index everything" rehashes and refreshes paths.
• Thumbnails are kept in memory (LRU + TTL), never written to disk.
"""

import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.engine import Engine

import routes
from cache import ThumbnailCache
from config import LOG_LEVEL
from database import engine as default_engine
from database import get_setting, init_db, set_setting
from errors import GalleryError
from log_utils import configure_logging, get_logger
from repository import ImageRepository
from tasks import TaskManager
from thumbnails import ImageService

logger = get_logger(__name__)


async def gallery_error_handler(request: Request, exc: GalleryError) -> JSONResponse:
    """Map typed errors to JSON; internal details stay in the logs."""
    if exc.is_internal:
        logger.error("Internal error occurred: %s", exc)
        body = {
            "error": "Internal server error",
            "code": exc.status_code,
            "details": "Check server logs for details",
        }
    else:
        body = {"error": str(exc), "code": exc.status_code}
    return JSONResponse(body, status_code=exc.status_code)


def load_last_indexed(bind: Engine) -> Optional[int]:
    value = get_setting("last_indexed", bind)
    try:
        return int(value) if value else None
    except ValueError:
        return None


def create_app(
    engine: Optional[Engine] = None,
    cache: Optional[ThumbnailCache] = None,
    images: Optional[ImageService] = None,
) -> FastAPI:
    """Build the application around one database engine."""
    bind = engine or default_engine
    repository = ImageRepository(bind)
    cache = cache or ThumbnailCache()
    images = images or ImageService(repository, cache)
    tasks = TaskManager(
        repository,
        on_complete=lambda ts: set_setting("last_indexed", str(ts), bind),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(bind)
        tasks.last_indexed = load_last_indexed(bind)
        yield
        await tasks.cancel()
        images.close()

    app = FastAPI(title="Gallery", lifespan=lifespan)
    app.state.repository = repository
    app.state.cache = cache
    app.state.images = images
    app.state.tasks = tasks
    app.add_exception_handler(GalleryError, gallery_error_handler)

    # Routes
    app.get("/", response_class=HTMLResponse)(routes.index)
    app.get("/config")(routes.get_config)
    app.post("/config")(routes.update_config)

    app.get("/task/index")(routes.index_files)
    app.get("/task/cancel")(routes.cancel_task)
    app.get("/task/status")(routes.task_status)

    # Static segments first so they are not taken for a hash
    app.get("/files/json")(routes.files_json)
    app.get("/files/random/json")(routes.random_json)
    app.get("/files/thumbnail/folder/download")(routes.thumbnail_folder)
    app.get("/files/thumbnail/photo/download")(routes.thumbnail_photo)
    app.get("/files/{hash}/download")(routes.retrieve_file)

    app.get("/folders/json")(routes.folders_json)
    app.get("/folders/json/name/{name}")(routes.folder_by_name)
    app.get("/folders/roots")(routes.roots_json)
    app.post("/folders/delete")(routes.delete_folder)
    app.post("/folders/assign")(routes.assign_tag)
    app.post("/folders/assign/folder")(routes.assign_tag_folder)

    app.get("/tags")(routes.get_tags)
    return app


configure_logging(LOG_LEVEL)
app = create_app()


if __name__ == "__main__":
    # Allow `python app.py 8000`
    port = int(sys.argv[1]) if len(sys.argv) > 1 else 8001
    print(f"→ Open http://localhost:{port}")
    import uvicorn

    uvicorn.run("app:app", host="127.0.0.1", port=port, reload=True)
