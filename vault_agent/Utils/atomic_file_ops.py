"""
Crash-safe writes for vault documents.

A session document is replaced in one step: readers see either the previous
text or the new text, never a truncated file.
"""

import os
import tempfile
from pathlib import Path
from typing import Union
from loguru import logger


def atomic_write_text(
    file_path: Union[str, Path],
    content: str,
    encoding: str = 'utf-8',
    mode: int = 0o644
) -> None:
    """
    Replace ``file_path`` with ``content``, creating parent folders.

    The text is written and fsynced to a hidden sibling temp file, which is
    then moved over the target with ``os.replace``. Line endings are written
    exactly as given, since the session codec compares delimiters by line.

    Raises:
        OSError: If the write or the final move fails; the temp file is removed
    """
    file_path = Path(file_path)
    parent_dir = file_path.parent
    parent_dir.mkdir(parents=True, exist_ok=True)
    
    temp_path = None
    
    try:
        fd, temp_path = tempfile.mkstemp(
            dir=parent_dir,
            prefix=f".{file_path.name}.",
            suffix=".tmp",
            text=True
        )
        
        with os.fdopen(fd, 'w', encoding=encoding, newline='') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        
        os.chmod(temp_path, mode)
        os.replace(temp_path, str(file_path))
        
        logger.debug(f"Wrote {len(content)} chars to {file_path.name}")
        
    except Exception as e:
        if temp_path and os.path.exists(temp_path):
            try:
                os.unlink(temp_path)
            except OSError:
                logger.warning(f"Could not remove temp file {temp_path}")
        logger.error(f"Failed to write vault document {file_path}: {e}")
        raise
