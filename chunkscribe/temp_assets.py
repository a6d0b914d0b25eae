"""Scoped ownership of intermediate files created during a run."""

import logging
import os
import shutil
import tempfile
from typing import List, Optional

from .exceptions import FileSystemError
from .models import MediaAsset

logger = logging.getLogger(__name__)


class TempAssetRegistry:
    """
    Tracks every temporary file and directory a run creates and removes them
    all on exit, whether the run succeeded or raised.

    Usage::

        with TempAssetRegistry(base_dir) as temps:
            work_dir = temps.work_dir
            temps.register(extracted.path)
    """

    def __init__(self, base_dir: Optional[str] = None, prefix: str = "chunkscribe_"):
        self.base_dir = base_dir
        self.prefix = prefix
        self.work_dir: Optional[str] = None
        self._files: List[str] = []

    def __enter__(self) -> "TempAssetRegistry":
        try:
            self.work_dir = tempfile.mkdtemp(prefix=self.prefix, dir=self.base_dir)
        except OSError as e:
            logger.error(f"Could not create a work directory in {self.base_dir or tempfile.gettempdir()}: {e}")
            raise FileSystemError(f"Could not create a work directory in {self.base_dir or tempfile.gettempdir()}: {e}") from e
        logger.debug(f"Created work directory: {self.work_dir}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def register(self, path: str) -> str:
        if path not in self._files:
            self._files.append(path)
        return path

    def register_asset(self, asset: MediaAsset) -> MediaAsset:
        """Registers an asset for deletion unless it is the user's own file."""
        if asset.temporary:
            self.register(asset.path)
        return asset

    @property
    def paths(self) -> List[str]:
        return list(self._files)

    def cleanup(self) -> None:
        """Removes registered files, then the work directory. Never raises."""
        logger.info("Cleaning up temporary files...")
        for file_path in self._files:
            if os.path.exists(file_path):
                try:
                    os.remove(file_path)
                    logger.info(f"Cleaned up temporary file: {file_path}")
                except OSError as e:
                    logger.warning(f"Could not remove temporary file {file_path}: {e}")
        self._files.clear()

        if self.work_dir and os.path.isdir(self.work_dir):
            shutil.rmtree(self.work_dir, ignore_errors=True)
            logger.debug(f"Removed work directory: {self.work_dir}")
        self.work_dir = None
