import os
from pathlib import Path

import pytest
from PIL import Image as PILImage

from database import init_db, make_engine
from models import ImageRecord
from repository import ImageRepository


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(tmp_path / "test_gallery.db")
    init_db(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture
def repository(engine):
    return ImageRepository(engine)


@pytest.fixture
def photo_root(tmp_path) -> Path:
    root = tmp_path / "photos"
    root.mkdir()
    return root


@pytest.fixture
def make_image():
    def _make(path: Path, size=(64, 48), color=(200, 30, 30), fmt=None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        mode = "RGBA" if len(color) == 4 else "RGB"
        PILImage.new(mode, size, color).save(path, format=fmt)
        return path

    return _make


@pytest.fixture
def make_record():
    def _make(**overrides) -> ImageRecord:
        fields = {
            "path": "/photos/trip/a.jpg",
            "hash": "a" * 64,
            "extension": "jpg",
            "filename": "a",
            "folder_name": "trip",
            "width": 640,
            "height": 480,
            "root": "/photos",
        }
        fields.update(overrides)
        return ImageRecord(**fields)

    return _make


@pytest.fixture
def make_undecodable_image(make_image):
    """Write an image whose file name is not valid UTF-8; skip where the filesystem refuses."""

    def _make(directory: Path, color=(10, 250, 10)) -> bytes:
        source = make_image(directory / "source.tmp.png", color=color, fmt="PNG")
        target = os.path.join(os.fsencode(directory), b"b\xff.png")
        try:
            with open(target, "wb") as fh:
                fh.write(source.read_bytes())
        except (OSError, UnicodeError):
            pytest.skip("filesystem does not accept non UTF-8 file names")
        finally:
            source.unlink()
        return target

    return _make
