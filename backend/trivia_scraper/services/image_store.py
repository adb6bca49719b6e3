"""Filesystem image store.

Images live at ``<root>/<owner_type>/<owner_id>/<filename>``. The filename
is the normalized, content-derived name, so an owner never holds two copies
of the same remote image.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from trivia_scraper.config import get_settings
from trivia_scraper.errors import ImageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OwnerRef:
    owner_type: str  # event, performer, venue
    owner_id: str
    role: str = "hero"  # hero, profile, place_photo

    def __str__(self) -> str:
        return f"{self.owner_type}:{self.owner_id}"


class LocalImageStore:
    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or get_settings().image_storage_dir)

    def path_for(self, filename: str, owner: OwnerRef) -> Path:
        return self.root / owner.owner_type / str(owner.owner_id) / filename

    def exists(self, filename: str, owner: OwnerRef) -> bool:
        return self.path_for(filename, owner).is_file()

    def store(self, content: bytes, filename: str, owner: OwnerRef) -> str:
        path = self.path_for(filename, owner)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a temp file first so readers never see a partial image
            fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
            os.replace(tmp_path, path)
        except OSError as e:
            raise ImageError(f"Failed to store {filename} for {owner}: {e}") from e
        logger.debug(f"Stored {len(content)} bytes at {path}")
        return str(path)

    def delete(self, filename: str, owner: OwnerRef) -> None:
        path = self.path_for(filename, owner)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise ImageError(f"Failed to delete {path}: {e}") from e
