"""Queries over the image table."""
import json
from typing import Iterable, Optional

from sqlalchemy import delete, func, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlmodel import select

from database import get_session
from models import FolderInfo, ImageRecord, RootInfo

ANY = "*"

# Columns refreshed by a forced re-index; tags belong to the tagging endpoints.
_UPSERT_COLUMNS = ("path", "extension", "filename", "folder_name", "width", "height", "root")


def process_tags(tags: Iterable[str]) -> str:
    """Trim, drop empties and duplicates (keeping first-seen order), encode as JSON."""
    unique = dict.fromkeys(t.strip() for t in tags if t and t.strip())
    return json.dumps(list(unique))


def tag_pattern(tag: str) -> str:
    """LIKE pattern (escape char backslash) matching one tag inside a stored JSON array."""
    encoded = json.dumps(tag)
    for ch in ("\\", "%", "_"):
        encoded = encoded.replace(ch, "\\" + ch)
    return f"%{encoded}%"


class ImageRepository:
    """Synchronous repository; async callers offload calls to a worker thread."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @staticmethod
    def _row(record: ImageRecord) -> dict:
        return {
            "path": record.path,
            "hash": record.hash,
            "extension": record.extension.lower(),
            "filename": record.filename.lower(),
            "folder_name": record.folder_name.lower(),
            "width": record.width,
            "height": record.height,
            "root": record.root,
        }

    # -- writes used by the indexer ---------------------------------------

    def insert_if_absent(self, record: ImageRecord) -> int:
        """Insert unless the hash is already stored. Returns affected rows (0 or 1)."""
        stmt = (
            sqlite_insert(ImageRecord.__table__)
            .values(**self._row(record))
            .on_conflict_do_nothing(index_elements=["hash"])
        )
        with get_session(self.engine) as s:
            result = s.exec(stmt)
            s.commit()
            return result.rowcount

    def upsert_by_hash(self, record: ImageRecord) -> int:
        """Insert, or overwrite path/metadata of the record with the same hash."""
        stmt = sqlite_insert(ImageRecord.__table__).values(**self._row(record))
        stmt = stmt.on_conflict_do_update(
            index_elements=["hash"],
            set_={col: stmt.excluded[col] for col in _UPSERT_COLUMNS},
        )
        with get_session(self.engine) as s:
            result = s.exec(stmt)
            s.commit()
            return result.rowcount

    # -- lookups ----------------------------------------------------------

    def all_hashes(self) -> list[str]:
        with get_session(self.engine) as s:
            return list(s.exec(select(ImageRecord.hash)).all())

    def get_by_hash(self, hash: str) -> Optional[ImageRecord]:
        with get_session(self.engine) as s:
            return s.exec(select(ImageRecord).where(ImageRecord.hash == hash)).first()

    def by_folder(self, folder_name: str) -> list[ImageRecord]:
        with get_session(self.engine) as s:
            stmt = select(ImageRecord).where(ImageRecord.folder_name == folder_name)
            return list(s.exec(stmt.order_by(ImageRecord.id)).all())

    def paged(self, folder_name: str, limit: int, offset: int) -> list[ImageRecord]:
        with get_session(self.engine) as s:
            stmt = (
                select(ImageRecord)
                .where(ImageRecord.folder_name == folder_name)
                .order_by(ImageRecord.id)
                .offset(offset)
                .limit(limit)
            )
            return list(s.exec(stmt).all())

    def random(
        self,
        folder_name: str = ANY,
        size: int = 1,
        root: str = ANY,
        tag: str = ANY,
        extension: str = ANY,
    ) -> list[ImageRecord]:
        """Random records; "*" leaves a filter open."""
        stmt = select(ImageRecord)
        if tag != ANY:
            stmt = stmt.where(ImageRecord.tags.like(tag_pattern(tag), escape="\\"))
        if folder_name != ANY:
            stmt = stmt.where(ImageRecord.folder_name == folder_name)
        if root != ANY:
            stmt = stmt.where(ImageRecord.root == root)
        if extension != ANY:
            stmt = stmt.where(ImageRecord.extension == extension.lower())
        with get_session(self.engine) as s:
            return list(s.exec(stmt.order_by(func.random()).limit(size)).all())

    def count_all(self) -> int:
        with get_session(self.engine) as s:
            return s.exec(select(func.count()).select_from(ImageRecord)).one()

    def count_by_folder(self, folder_name: str) -> int:
        with get_session(self.engine) as s:
            stmt = (
                select(func.count())
                .select_from(ImageRecord)
                .where(ImageRecord.folder_name == folder_name)
            )
            return s.exec(stmt).one()

    # -- folders and roots ------------------------------------------------

    def folders(
        self, search: str = "%", root: str = ANY, limit: int = 25, offset: int = 0
    ) -> list[FolderInfo]:
        """Folders matching a LIKE pattern, with their image counts."""
        stmt = (
            select(ImageRecord.folder_name, func.count(ImageRecord.id), ImageRecord.root)
            .where(ImageRecord.folder_name.like(search))
            .group_by(ImageRecord.folder_name, ImageRecord.root)
            .order_by(ImageRecord.folder_name)
        )
        if root != ANY:
            stmt = stmt.where(ImageRecord.root == root)
        with get_session(self.engine) as s:
            rows = s.exec(stmt.offset(offset).limit(limit)).all()
        return [FolderInfo(folder_name=f, count=c, root=r) for f, c, r in rows]

    def folder_by_name(self, name: str) -> list[FolderInfo]:
        stmt = (
            select(ImageRecord.folder_name, func.count(ImageRecord.id), ImageRecord.root)
            .where(ImageRecord.folder_name == name)
            .group_by(ImageRecord.folder_name, ImageRecord.root)
        )
        with get_session(self.engine) as s:
            rows = s.exec(stmt).all()
        return [FolderInfo(folder_name=f, count=c, root=r) for f, c, r in rows]

    def roots(self) -> list[str]:
        with get_session(self.engine) as s:
            return list(s.exec(select(ImageRecord.root).distinct().order_by(ImageRecord.root)).all())

    def roots_summary(self) -> list[RootInfo]:
        stmt = (
            select(
                ImageRecord.root,
                func.count(ImageRecord.id),
                func.count(func.distinct(ImageRecord.folder_name)),
            )
            .group_by(ImageRecord.root)
            .order_by(ImageRecord.root)
        )
        with get_session(self.engine) as s:
            rows = s.exec(stmt).all()
        return [RootInfo(root=r, count=c, folder_count=fc) for r, c, fc in rows]

    # -- tags -------------------------------------------------------------

    def all_tags(self, folder_name: str = ANY) -> list[str]:
        stmt = select(ImageRecord.tags).where(ImageRecord.tags.is_not(None))
        if folder_name != ANY:
            stmt = stmt.where(ImageRecord.folder_name == folder_name)
        unique: set[str] = set()
        with get_session(self.engine) as s:
            for raw in s.exec(stmt).all():
                try:
                    tags = json.loads(raw)
                except ValueError:
                    continue
                if isinstance(tags, list):
                    unique.update(t for t in tags if isinstance(t, str))
        return sorted(unique)

    def add_tags(self, hash: str, tags: Iterable[str]) -> int:
        """Replace the tags of one image."""
        stmt = (
            update(ImageRecord)
            .where(ImageRecord.hash == hash)
            .values(tags=process_tags(tags))
        )
        with get_session(self.engine) as s:
            result = s.exec(stmt)
            s.commit()
            return result.rowcount

    def add_tags_folder(self, folder_name: str, tags: Iterable[str]) -> int:
        """Replace the tags of every image in a folder."""
        stmt = (
            update(ImageRecord)
            .where(ImageRecord.folder_name == folder_name)
            .values(tags=process_tags(tags))
        )
        with get_session(self.engine) as s:
            result = s.exec(stmt)
            s.commit()
            return result.rowcount

    # -- deletes ----------------------------------------------------------

    def delete_by_folder(self, folder_name: str) -> int:
        stmt = delete(ImageRecord).where(ImageRecord.folder_name == folder_name)
        with get_session(self.engine) as s:
            result = s.exec(stmt)
            s.commit()
            return result.rowcount
