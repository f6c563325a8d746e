"""Utility functions."""
from pathlib import Path

from config import MAX_FOLDER_NAME_LENGTH, MAX_HASH_LENGTH, MIN_HASH_LENGTH
from errors import BadRequestError


def resolve_under_root(root: Path, candidate: Path) -> Path:
    """Resolve a path ensuring it's under the root directory."""
    root = root.resolve()
    real = candidate.resolve()
    if root not in real.parents and real != root:
        raise BadRequestError("Path is outside root")
    return real


def validate_hash(value: str) -> str:
    if (
        not value.isalnum()
        or not value.isascii()
        or not MIN_HASH_LENGTH <= len(value) <= MAX_HASH_LENGTH
    ):
        raise BadRequestError("Invalid hash format")
    return value


def validate_folder_name(value: str) -> str:
    if not value or len(value) > MAX_FOLDER_NAME_LENGTH:
        raise BadRequestError("Invalid folder name")
    # no directory traversal
    if ".." in value or "/" in value or "\\" in value:
        raise BadRequestError("Invalid folder name: contains forbidden characters")
    return value
