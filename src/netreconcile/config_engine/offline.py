"""Offline sink: accumulate deltas in a local set file instead of a device.

Nothing here checks existence, locks or commits. The file is a plain
append-only list of statements for later inspection or batch loading.
"""
import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class OfflineSink:
    """Appends configuration lines to a UTF-8 text file."""

    def __init__(self, target_path: str, dir_mode: int = 0o755, file_mode: int = 0o644):
        self.target_path = target_path
        self.dir_mode = dir_mode
        self.file_mode = file_mode

    def append(self, delta: list[str], target_path: Optional[str] = None) -> Path:
        """Append each line with a trailing newline; return the file written."""
        path = Path(target_path or self.target_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True, mode=self.dir_mode)
        created = not path.exists()

        with open(path, "a", encoding="utf-8") as f:
            for line in delta:
                f.write(line + "\n")

        if created:
            os.chmod(path, self.file_mode)
        logger.info(f"Appended {len(delta)} lines to {path}")
        return path

    async def append_async(self, delta: list[str], target_path: Optional[str] = None) -> Path:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.append, delta, target_path)
