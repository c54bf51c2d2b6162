"""
Local disk storage for uploaded PDFs.

Files are stored flat in the upload directory under a generated name:
`<epoch milliseconds>-<random 9 digits><original extension>`.
"""

import logging
import secrets
import time
from pathlib import Path

logger = logging.getLogger(__name__)


class FileStorage:
    """Saves, resolves and deletes uploaded files."""

    def __init__(self, upload_dir: Path | str):
        self.upload_dir = Path(upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def build_filename(original_name: str) -> str:
        """Generate a unique stored filename keeping the original extension."""
        suffix = Path(original_name).suffix.lower()
        return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix}"

    def path_for(self, filename: str) -> Path:
        """Absolute path of a stored file. Rejects names that leave the directory."""
        path = (self.upload_dir / filename).resolve()
        if path.parent != self.upload_dir.resolve():
            raise ValueError(f"Invalid stored filename: {filename}")
        return path

    def save(self, content: bytes, original_name: str) -> str:
        """
        Write content to a new file.

        Returns:
            The stored filename (not the full path).
        """
        filename = self.build_filename(original_name)
        self.path_for(filename).write_bytes(content)
        logger.info("Stored upload %s as %s (%d bytes)", original_name, filename, len(content))
        return filename

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    def read(self, filename: str) -> bytes:
        return self.path_for(filename).read_bytes()

    def delete(self, filename: str) -> bool:
        """Remove a stored file. Returns False if it was already gone."""
        path = self.path_for(filename)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted stored file %s", filename)
        return True


_file_storage: FileStorage | None = None


def get_file_storage() -> FileStorage:
    """Get or create the file storage singleton."""
    global _file_storage
    if _file_storage is None:
        from ..config import get_settings

        _file_storage = FileStorage(get_settings().upload_dir)
    return _file_storage
