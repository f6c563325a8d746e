"""FastAPI routes for the gallery."""
import asyncio
import email.utils
import hashlib
import time
from datetime import datetime
from typing import List as ListType
from typing import Optional

from fastapi import Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from pydantic import BaseModel

from config import DEFAULT_ITEMS_PER_PAGE, DEFAULT_RANDOM_SIZE, MAX_ITEMS_PER_PAGE
from database import get_images_dirs, set_images_dirs
from errors import ValidationError
from models import ImageRecord
from repository import ANY, ImageRepository
from tasks import TaskManager
from templates_static import build_environment
from thumbnails import ImagePayload, ImageService

MAX_IMAGE_SIDE = 10_000

# Jinja environment
jinja_env = build_environment()


def fmt_datetime(value):
    """Format datetime for templates."""
    try:
        return (
            datetime.fromtimestamp(value).strftime("%Y-%m-%d %H:%M:%S")
            if isinstance(value, (int, float))
            else value.strftime("%Y-%m-%d %H:%M:%S")
        )
    except Exception:
        return str(value)


jinja_env.filters["datetime"] = fmt_datetime


def render(name: str, **ctx) -> HTMLResponse:
    """Render template with context."""
    template = jinja_env.get_template(name)
    return HTMLResponse(template.render(**ctx))


def _repository(request: Request) -> ImageRepository:
    return request.app.state.repository


def _tasks(request: Request) -> TaskManager:
    return request.app.state.tasks


def _images(request: Request) -> ImageService:
    return request.app.state.images


def record_json(record: ImageRecord) -> dict:
    data = record.model_dump()
    data["tags"] = record.tag_list()
    return data


def image_response(payload: ImagePayload) -> Response:
    """Image bytes with browser caching headers."""
    now = time.time()
    etag = hashlib.sha1(payload.data).hexdigest()[:16]
    headers = {
        "Cache-Control": f"public, max-age={payload.max_age}",
        "ETag": f'"{etag}"',
        "Expires": email.utils.formatdate(now + payload.max_age, usegmt=True),
        "Last-Modified": email.utils.formatdate(now, usegmt=True),
    }
    return Response(content=payload.data, media_type=payload.media_type, headers=headers)


# -- pages ----------------------------------------------------------------


async def index(request: Request, msg: Optional[str] = None):
    """Folder overview with indexing controls."""
    repository = _repository(request)
    engine = repository.engine
    folders, total, roots, images_dirs = await asyncio.gather(
        asyncio.to_thread(repository.folders, "%", ANY, 200, 0),
        asyncio.to_thread(repository.count_all),
        asyncio.to_thread(repository.roots),
        asyncio.to_thread(get_images_dirs, engine),
    )
    return render(
        "index.html",
        title="Gallery",
        folders=folders,
        total=total,
        roots=roots,
        images_dirs=images_dirs,
        status=_tasks(request).status(),
        msg=msg,
    )


# -- background indexing ---------------------------------------------------


async def index_files(request: Request, force: Optional[str] = Query(None)):
    """Start indexing every configured root unless a scan is already running."""
    force_param = (force or "false").strip()
    if force_param not in ("", "true", "false"):
        raise ValidationError("Force parameter must be 'true' or 'false'")
    force_write = force_param == "true"

    roots = await asyncio.to_thread(get_images_dirs, _repository(request).engine)
    result = await _tasks(request).start(roots, force=force_write)
    return {
        "status": "success",
        "task_running": result.already_running,
        "message": (
            "Indexation task is already running"
            if result.already_running
            else "Started new indexation task"
        ),
        "last_indexed": result.last_indexed,
    }


async def cancel_task(request: Request):
    was_running = await _tasks(request).cancel()
    if was_running:
        return {
            "status": "success",
            "message": "Indexation task has been canceled",
            "was_running": True,
            "task_running": False,
        }
    return {
        "status": "info",
        "message": "No indexation task was running",
        "was_running": False,
        "task_running": False,
    }


async def task_status(request: Request):
    status = _tasks(request).status()
    return {"running": status.running, "last_indexed": status.last_indexed}


# -- image bytes -------------------------------------------------------------


async def retrieve_file(
    request: Request,
    hash: str,
    width: Optional[int] = Query(None, ge=1, le=MAX_IMAGE_SIDE),
    height: Optional[int] = Query(None, ge=1, le=MAX_IMAGE_SIDE),
):
    """Serve the original file, or a smaller copy when width and height ask for one."""
    payload = await _images(request).download(hash, width, height)
    return image_response(payload)


async def thumbnail_folder(
    request: Request,
    folder: str = Query(...),
    number: Optional[int] = Query(None, ge=1),
    width: Optional[int] = Query(None, ge=1, le=MAX_IMAGE_SIDE),
    height: Optional[int] = Query(None, ge=1, le=MAX_IMAGE_SIDE),
):
    payload = await _images(request).folder_thumbnail(folder, number, width, height)
    return image_response(payload)


async def thumbnail_photo(
    request: Request,
    hash: str = Query(...),
    width: Optional[int] = Query(None, ge=1, le=MAX_IMAGE_SIDE),
    height: Optional[int] = Query(None, ge=1, le=MAX_IMAGE_SIDE),
):
    payload = await _images(request).photo_thumbnail(hash, width, height)
    return image_response(payload)


# -- metadata ----------------------------------------------------------------


async def files_json(
    request: Request,
    folder: str = Query(...),
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_ITEMS_PER_PAGE, ge=1, le=MAX_ITEMS_PER_PAGE),
):
    """One page of a folder's images."""
    repository = _repository(request)
    offset = (page - 1) * per_page
    items, total = await asyncio.gather(
        asyncio.to_thread(repository.paged, folder, per_page, offset),
        asyncio.to_thread(repository.count_by_folder, folder),
    )
    return {"items": [record_json(r) for r in items], "page": page, "total": total}


async def random_json(
    request: Request,
    size: int = Query(DEFAULT_RANDOM_SIZE, ge=1, le=MAX_ITEMS_PER_PAGE),
    folder: str = Query(ANY),
    root: str = Query(ANY),
    tag: str = Query(ANY),
    extension: str = Query(ANY),
):
    records = await asyncio.to_thread(
        _repository(request).random, folder, size, root, tag, extension
    )
    return [record_json(r) for r in records]


async def folders_json(
    request: Request,
    searchby: str = Query(""),
    root: str = Query(ANY),
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_ITEMS_PER_PAGE, ge=1, le=MAX_ITEMS_PER_PAGE),
):
    folders = await asyncio.to_thread(
        _repository(request).folders,
        f"%{searchby}%",
        root,
        per_page,
        (page - 1) * per_page,
    )
    return [f.model_dump() for f in folders]


async def folder_by_name(request: Request, name: str):
    folders = await asyncio.to_thread(_repository(request).folder_by_name, name)
    return [f.model_dump() for f in folders]


async def roots_json(request: Request):
    roots = await asyncio.to_thread(_repository(request).roots_summary)
    return [r.model_dump() for r in roots]


async def get_tags(request: Request, folder: str = Query(ANY)):
    return await asyncio.to_thread(_repository(request).all_tags, folder)


class DeleteFolder(BaseModel):
    folder_name: str


class TagAssign(BaseModel):
    hash: str
    tags: ListType[str]


class TagFolderAssign(BaseModel):
    folder_name: str
    tags: ListType[str]


async def delete_folder(request: Request, data: DeleteFolder):
    deleted = await asyncio.to_thread(_repository(request).delete_by_folder, data.folder_name)
    return {"status": "success", "deleted": deleted}


async def assign_tag(request: Request, data: TagAssign):
    updated = await asyncio.to_thread(_repository(request).add_tags, data.hash, data.tags)
    return {"status": "success", "updated": updated}


async def assign_tag_folder(request: Request, data: TagFolderAssign):
    updated = await asyncio.to_thread(
        _repository(request).add_tags_folder, data.folder_name, data.tags
    )
    return {"status": "success", "updated": updated}


# -- configuration -----------------------------------------------------------


async def get_config(request: Request):
    images_dirs = await asyncio.to_thread(get_images_dirs, _repository(request).engine)
    return {"images_dirs": images_dirs}


async def update_config(request: Request, images_dirs: str = Form(...)):
    """Replace the configured image folders (one per line)."""
    dirs = [line.strip() for line in images_dirs.splitlines() if line.strip()]
    await asyncio.to_thread(set_images_dirs, dirs, _repository(request).engine)
    return RedirectResponse(url=f"/?msg=Saved+{len(dirs)}+image+folders", status_code=303)
