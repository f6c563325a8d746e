"""Image scanning utilities.

Walks the configured image roots, hashes new files and writes them through
the repository. Safe to run repeatedly: records are keyed by content hash, so
a second pass over an unchanged tree writes nothing.
"""
import asyncio
import hashlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional

from PIL import Image as PILImage
from sqlalchemy.exc import SQLAlchemyError

from config import (
    HASH_BUFFER_SIZE,
    HASH_PREFIX_LENGTH,
    IGNORED_PATH_MARKER,
    IMAGE_EXTENSIONS,
    MAX_WALKDIR_DEPTH,
)
from log_utils import get_logger, log_slow_operation
from models import ImageRecord
from repository import ImageRepository

logger = get_logger(__name__)

# Characters removed from folder names after lowercasing and hyphenating
FOLDER_STRIP_CHARS = "/#&(),\".;:'"
_FOLDER_STRIP_TABLE = str.maketrans("", "", FOLDER_STRIP_CHARS)

INSERTED = "inserted"
UPSERTED = "upserted"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class ImageInfo:
    file_name: str
    extension: str
    folder_name: str
    width: int
    height: int


@dataclass
class IndexReport:
    """Outcome counters of one pass over a root."""
    root: str
    inserted: int = 0
    upserted: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False

    def count(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)


def calculate_sha256(path: Path, chunk: int = HASH_BUFFER_SIZE) -> str:
    """Calculate the SHA-256 hex digest of a file."""
    h = hashlib.sha256()
    with log_slow_operation(logger, "calculate_sha256", 100):
        with path.open("rb") as f:
            while True:
                b = f.read(chunk)
                if not b:
                    break
                h.update(b)
    return h.hexdigest()


def read_image_meta(path: Path) -> tuple[int, int]:
    """Read image dimensions from the header; (0, 0) when unreadable."""
    try:
        with PILImage.open(path) as im:
            return im.size
    except Exception as exc:
        logger.warning("Failed to read image dimensions for %s: %s", path, exc)
        return 0, 0


def extract_image_info(path: Path) -> ImageInfo:
    w, h = read_image_meta(path)
    return ImageInfo(
        file_name=path.stem,
        extension=path.suffix.lstrip(".").lower(),
        folder_name=path.parent.name,
        width=w,
        height=h,
    )


def sanitize_folder_name(name: str) -> str:
    """Lowercase, spaces to hyphens, drop characters unsafe in URLs and paths."""
    return name.lower().replace(" ", "-").translate(_FOLDER_STRIP_TABLE)


def hash_prefix(value: str) -> str:
    return value[:HASH_PREFIX_LENGTH]


def hash_from_filename(stem: str) -> Optional[str]:
    """Hash prefix embedded in a `<name>_<hash>` stem, if the stem has that shape."""
    parts = stem.split("_")
    if len(parts) != 2 or not parts[1]:
        return None
    return hash_prefix(parts[1])


def is_hidden(name: str) -> bool:
    return name.startswith(".")


def is_image(path: Path) -> bool:
    return path.suffix.lstrip(".").lower() in IMAGE_EXTENSIONS


def _list_dir(directory: Path) -> list[tuple[Path, bool]]:
    entries = []
    with os.scandir(directory) as it:
        for entry in it:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError as exc:
                logger.warning("Skipping %s: %s", entry.path, exc)
                continue
            entries.append((Path(entry.path), is_dir))
    return sorted(entries)


async def iter_image_files(
    root: Path, max_depth: int = MAX_WALKDIR_DEPTH
) -> AsyncIterator[Path]:
    """Yield image files at most max_depth levels below root.

    Hidden entries and vendor thumbnail folders are skipped along with their
    subtrees. Unreadable directories are logged and skipped.
    """
    pending = [(root, 1)]
    while pending:
        directory, depth = pending.pop(0)
        try:
            entries = await asyncio.to_thread(_list_dir, directory)
        except OSError as exc:
            logger.warning("Cannot read directory %s: %s", directory, exc)
            continue
        for path, is_dir in entries:
            if is_hidden(path.name) or IGNORED_PATH_MARKER in str(path).lower():
                continue
            if is_dir:
                if depth < max_depth:
                    pending.append((path, depth + 1))
                continue
            if is_image(path):
                yield path


def index_file(
    path: Path,
    root: str,
    repository: ImageRepository,
    force_write: bool,
    last_indexed: Optional[int],
    known_hashes: set[str],
) -> tuple[str, Optional[str]]:
    """Index one file. Returns (outcome, raw folder name when written)."""
    if not force_write and last_indexed is not None:
        try:
            modified = path.stat().st_mtime
        except OSError:
            modified = None
        if modified is not None and modified <= last_indexed:
            return SKIPPED, None

    # Files renamed to `<name>_<hash>` can be recognised without reading them.
    probe = hash_from_filename(path.stem)
    if probe is not None and probe in known_hashes:
        return SKIPPED, None

    try:
        digest = calculate_sha256(path)
    except OSError as exc:
        logger.warning("Cannot hash %s: %s", path, exc)
        return FAILED, None

    info = extract_image_info(path)
    if info.width == 0 or info.height == 0:
        logger.debug("Skipping %s: no usable dimensions", path)
        return SKIPPED, None

    record = ImageRecord(
        path=str(path),
        hash=digest,
        extension=info.extension,
        filename=info.file_name,
        folder_name=sanitize_folder_name(info.folder_name),
        width=info.width,
        height=info.height,
        root=root,
    )
    try:
        if force_write:
            rows = repository.upsert_by_hash(record)
            outcome = UPSERTED if rows else SKIPPED
        else:
            rows = repository.insert_if_absent(record)
            outcome = INSERTED if rows else SKIPPED
    except SQLAlchemyError as exc:
        logger.warning("Failed to store %s: %s", path, exc)
        return FAILED, None

    known_hashes.add(hash_prefix(digest))
    return outcome, info.folder_name


async def walk_directory(
    root_path: str,
    repository: ImageRepository,
    force_write: bool = False,
    last_indexed: Optional[int] = None,
    should_cancel: Optional[asyncio.Event] = None,
) -> IndexReport:
    """Index all images under root_path. Returns scan stats.

    Without force_write, files already known by hash (or unmodified since
    last_indexed) are skipped and new hashes are inserted; with force_write
    every file is hashed again and upserted. Per-file failures are logged and
    never stop the walk, whatever they raise. Modification times are compared
    with sub-second precision against last_indexed. The known-hash set holds hash prefixes only, so two
    files sharing the first HASH_PREFIX_LENGTH characters count as the same.
    """
    report = IndexReport(root=root_path)
    root = Path(root_path)
    logger.info("Started indexing %s", root_path)

    if not await asyncio.to_thread(root.is_dir):
        logger.warning("Image root %s does not exist or is not a directory", root_path)
        return report

    known_hashes: set[str] = set()
    if not force_write:
        try:
            hashes = await asyncio.to_thread(repository.all_hashes)
        except SQLAlchemyError as exc:
            logger.warning("Could not load known hashes, hashing every file: %s", exc)
            hashes = []
        known_hashes = {hash_prefix(h) for h in hashes}

    seen_folders: set[str] = set()
    async for path in iter_image_files(root):
        if should_cancel is not None and should_cancel.is_set():
            report.cancelled = True
            logger.info("Indexing of %s cancelled", root_path)
            break
        try:
            outcome, folder = await asyncio.to_thread(
                index_file, path, root_path, repository, force_write, last_indexed, known_hashes
            )
        except Exception:
            logger.exception("Failed to index %r", str(path))
            outcome, folder = FAILED, None
        report.count(outcome)
        if folder is not None and folder not in seen_folders:
            seen_folders.add(folder)
            action = "update" if force_write else "inserts"
            logger.info("Folder: %s - ongoing %s...", folder, action)

    logger.info(
        "Done indexing %s: %d inserted, %d upserted, %d skipped, %d failed",
        root_path,
        report.inserted,
        report.upserted,
        report.skipped,
        report.failed,
    )
    return report
