"""Zip extraction into the output directory."""

from __future__ import annotations

import io
import logging
import shutil
import zipfile
import zlib
from pathlib import Path, PurePosixPath

from sitedrop.errors import ExtractionError

_LOG = logging.getLogger(__name__)


def _check_member(name: str, dest_dir: Path) -> None:
    """Reject absolute paths and entries that escape ``dest_dir``."""
    member_path = PurePosixPath(name)
    if member_path.is_absolute() or (member_path.parts and member_path.parts[0].endswith(":")):
        raise ExtractionError(f"Archive contains absolute path: {name}")

    final_path = (dest_dir / name).resolve()
    if not final_path.is_relative_to(dest_dir.resolve()):
        raise ExtractionError(f"Archive contains path traversal: {name}")


def extract_zip(data: bytes, dest_dir: Path) -> list[str]:
    """Extract a buffered zip archive into ``dest_dir``, one entry at a time.

    All entry names are validated before the first write, so an unsafe
    archive leaves ``dest_dir`` untouched. A corrupt entry found midway
    leaves whatever was already written.

    Args:
        data: The complete archive.
        dest_dir: Directory to extract into (created if missing).

    Returns:
        Paths of the extracted files relative to ``dest_dir``, POSIX style
        (directories excluded). ``./index.html`` is reported as ``index.html``.

    Raises:
        ExtractionError: The archive is malformed or unsafe, or a write failed.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            members = archive.infolist()
            for member in members:
                _check_member(member.filename, dest_dir)

            dest_dir.mkdir(parents=True, exist_ok=True)
            root = dest_dir.resolve()
            extracted = []
            for member in members:
                written = Path(archive.extract(member, dest_dir)).resolve()
                if not member.is_dir():
                    extracted.append(written.relative_to(root).as_posix())
    except (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, NotImplementedError) as e:
        raise ExtractionError(f"Invalid zip archive: {e}") from e
    except OSError as e:
        raise ExtractionError(f"Failed to write deployment: {e}") from e

    return extracted


def copy_placeholder(template: Path, dest_dir: Path) -> None:
    """Copy the "deploying" page to ``dest_dir/index.html``.

    Best-effort: a missing template is skipped and copy errors are only logged.
    """
    if not template.exists():
        return
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(template, dest_dir / "index.html")
    except OSError as e:
        _LOG.error("Failed to copy deployment placeholder to %s: %s", dest_dir, e)
