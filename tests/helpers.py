"""Test helpers for building archives and inspecting output directories."""

import io
import zipfile
from pathlib import Path

PLACEHOLDER_HTML = "<h1>deploying</h1>"


def make_zip(files: dict[str, str | bytes]) -> bytes:
    """Build an in-memory zip archive from {name: content}."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buf.getvalue()


def list_files(root: Path) -> set[str]:
    """Return all file paths under ``root`` relative to it, POSIX style."""
    if not root.exists():
        return set()
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()}
