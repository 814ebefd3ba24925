"""Writes rendered lab files to disk in one step."""
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Union

logger = logging.getLogger(__name__)

EXECUTABLE_SUFFIXES = (".sh",)


class OutputExistsError(FileExistsError):
    """The output directory is already there."""
    pass


def write_atomic(output_dir: Union[str, Path], files: Dict[str, str]) -> Path:
    """Write every file under a temporary sibling directory, then rename it into place.

    Args:
        output_dir: Directory to create; must not exist yet
        files: Relative path -> file text

    Returns:
        The created output directory

    Raises:
        OutputExistsError: If output_dir already exists
    """
    output_dir = Path(output_dir)
    if output_dir.exists():
        raise OutputExistsError(f"Output directory already exists: {output_dir}")

    parent = output_dir.absolute().parent
    parent.mkdir(parents=True, exist_ok=True)
    tmp = Path(tempfile.mkdtemp(prefix=".tmp-labctl-", dir=parent))
    try:
        for relative, content in files.items():
            dest = tmp / relative
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(content, encoding="utf-8")
            if dest.suffix in EXECUTABLE_SUFFIXES:
                dest.chmod(0o755)
        tmp.chmod(0o755)
        os.replace(tmp, output_dir)
    except Exception:
        shutil.rmtree(tmp, ignore_errors=True)
        raise

    logger.info(f"Wrote {len(files)} file(s) to {output_dir}")
    return output_dir
