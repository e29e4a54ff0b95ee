"""Saves full-resolution MatCap textures into the download directory."""
import logging
from pathlib import Path
from typing import Optional

from matcap_browser.utils.images import decode_image
from matcap_browser.utils.validators import clean_file_name

logger = logging.getLogger(__name__)

FILE_PREFIX = "Matcap_"


class DownloadManager:
    """Writes downloaded textures as `Matcap_<name>.png` under `download_dir`."""

    def __init__(self, download_dir: str = "downloads/matcaps"):
        self.download_dir = Path(download_dir)

    def path_for(self, file_name: str) -> Path:
        """Target path for a listed file name."""
        return self.download_dir / f"{FILE_PREFIX}{Path(clean_file_name(file_name)).name}"

    def is_downloaded(self, file_name: str) -> bool:
        return self.path_for(file_name).is_file()

    def save(self, payload: bytes, file_name: str) -> Optional[Path]:
        """Decode `payload` and store it as PNG.

        Returns:
            Path of the written file, or None if the payload is not an image
            or the file could not be written.
        """
        image = decode_image(payload)
        if image is None:
            logger.error("Downloaded data for %s is not a valid image", file_name)
            return None
        path = self.path_for(file_name)
        try:
            if not self.download_dir.exists():
                self.download_dir.mkdir(parents=True, exist_ok=True)
                logger.info("Created directory: %s", self.download_dir)
            image.save(path, format="PNG")
        except OSError as e:
            logger.error("Failed to save %s: %s", file_name, e)
            return None
        logger.info("Saved %s (%d bytes)", path, path.stat().st_size)
        return path
