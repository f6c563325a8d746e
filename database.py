"""Database configuration and utilities."""
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from config import DB_PATH, env_images_dirs
from models import Setting, SQLModel


def make_engine(db_path: Path | str) -> Engine:
    """Create a SQLite engine usable from worker threads."""
    return create_engine(
        f"sqlite:///{db_path}", connect_args={"check_same_thread": False}
    )


# Database engine
engine = make_engine(DB_PATH)


@contextmanager
def get_session(bind: Optional[Engine] = None):
    """Get a database session context manager."""
    with Session(bind or engine) as session:
        yield session


def init_db(bind: Optional[Engine] = None) -> None:
    """Initialize database tables."""
    SQLModel.metadata.create_all(bind or engine)


def get_setting(key: str, bind: Optional[Engine] = None) -> Optional[str]:
    """Get a setting value by key."""
    with get_session(bind) as s:
        row = s.get(Setting, key)
        return row.value if row else None


def set_setting(key: str, value: str, bind: Optional[Engine] = None) -> None:
    """Set a setting value."""
    with get_session(bind) as s:
        row = s.get(Setting, key)
        if row:
            row.value = value
        else:
            s.add(Setting(key=key, value=value))
        s.commit()


def get_images_dirs(bind: Optional[Engine] = None) -> list[str]:
    """Configured image roots; a stored setting wins over the environment."""
    stored = get_setting("images_dirs", bind)
    if stored:
        try:
            dirs = json.loads(stored)
        except ValueError:
            dirs = None
        if isinstance(dirs, list):
            return [str(d) for d in dirs]
    return env_images_dirs()


def set_images_dirs(dirs: list[str], bind: Optional[Engine] = None) -> None:
    set_setting("images_dirs", json.dumps(dirs), bind)
