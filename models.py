"""Database models for the gallery."""
import json
from typing import Optional

from pydantic import BaseModel
from sqlmodel import Field, SQLModel


class ImageRecord(SQLModel, table=True):
    """One indexed image file, identified by its content hash."""
    __tablename__ = "files"

    id: Optional[int] = Field(default=None, primary_key=True)
    path: str = Field(index=True, description="Absolute path")
    hash: str = Field(index=True, unique=True, description="SHA-256 hex digest")
    extension: str
    filename: str
    folder_name: str = Field(index=True)
    width: int
    height: int
    tags: Optional[str] = Field(default=None, description="JSON array of tags")
    root: str = Field(index=True)

    def tag_list(self) -> list[str]:
        if not self.tags:
            return []
        try:
            tags = json.loads(self.tags)
        except ValueError:
            return []
        return [t for t in tags if isinstance(t, str)]


class Setting(SQLModel, table=True):
    """Application settings."""
    key: str = Field(primary_key=True)
    value: str


class FolderInfo(BaseModel):
    folder_name: str
    count: int
    root: str


class RootInfo(BaseModel):
    root: str
    count: int
    folder_count: int
