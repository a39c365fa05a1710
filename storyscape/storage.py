"""Local media store for generated images and narration audio."""

import logging
import uuid
from pathlib import Path

from storyscape.config import Config
from storyscape.errors import PersistenceError

logger = logging.getLogger(__name__)

IMAGE_BUCKET = "story-images"
AUDIO_BUCKET = "story-audio"


class MediaStore:
    """Writes media files under a root directory and hands back public URLs."""

    def __init__(self, root: Path, base_url: str = "/media") -> None:
        self.root = root
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_config(cls, config: Config) -> "MediaStore":
        return cls(config.resolved_media_dir, config.media_base_url)

    def save(self, bucket: str, data: bytes, extension: str) -> str:
        """Store bytes under a fresh name. Returns the public URL."""
        file_name = f"{uuid.uuid4()}.{extension.lstrip('.')}"
        target = self.root / bucket / file_name
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise PersistenceError(f"Could not write {target}: {e}") from e
        logger.debug("Stored %d bytes at %s", len(data), target)
        return self.public_url(bucket, file_name)

    def public_url(self, bucket: str, file_name: str) -> str:
        return f"{self.base_url}/{bucket}/{file_name}"

    def resolve(self, url: str) -> Path:
        """Map a public URL produced by save() back to its file path."""
        prefix = f"{self.base_url}/"
        if not self.owns(url):
            raise ValueError(f"Not a media store URL: {url}")
        return self.root / url[len(prefix):]

    def owns(self, url: str) -> bool:
        return url.startswith(f"{self.base_url}/")

    def delete(self, url: str) -> None:
        """Remove a file saved by this store. Foreign URLs are ignored."""
        if not self.owns(url):
            return
        try:
            self.resolve(url).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not delete {url}: {e}") from e
        logger.debug("Deleted %s", url)
