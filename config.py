"""Application configuration."""
import os
from pathlib import Path

# Configuration
APP_DIR = Path(__file__).resolve().parent
DB_PATH = Path(os.environ.get("GALLERY_DB_PATH", APP_DIR / "gallery.db"))
LOG_LEVEL = os.environ.get("GALLERY_LOG_LEVEL", "INFO")

# Cache durations (in seconds)
CACHE_TTL_1_DAY = 86400
CACHE_TTL_4_DAYS = 345600
CACHE_TTL_1_WEEK = 604800
MAX_CACHE_CAPACITY = int(os.environ.get("GALLERY_CACHE_CAPACITY", 10_000))

# Image processing defaults
DEFAULT_THUMBNAIL_WIDTH = 150
DEFAULT_THUMBNAIL_HEIGHT = 150
TRANSCODE_WORKERS = 4

# Validation limits
MIN_HASH_LENGTH = 8
MAX_HASH_LENGTH = 128
MAX_FOLDER_NAME_LENGTH = 255
MAX_ITEMS_PER_PAGE = 100
DEFAULT_ITEMS_PER_PAGE = 25
DEFAULT_RANDOM_SIZE = 10

# File processing
HASH_BUFFER_SIZE = 4096
MAX_WALKDIR_DEPTH = 2
HASH_PREFIX_LENGTH = 16
IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "bmp", "webp"}
IGNORED_PATH_MARKER = "@eadir"

# Background indexing
CANCEL_GRACE_SECONDS = 0.1


def env_images_dirs() -> list[str]:
    """Image roots from GALLERY_IMAGES_DIRS (os.pathsep separated)."""
    raw = os.environ.get("GALLERY_IMAGES_DIRS", "")
    return [p.strip() for p in raw.split(os.pathsep) if p.strip()]
