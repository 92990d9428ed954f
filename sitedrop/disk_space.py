"""Free disc space lookup for the volume holding the output directory.

The numbers come from ``df -h -P``; the fourth column of the first data row
is the available space, e.g. ``100M``. When the output cannot be read in that
shape the check fails open: the deployment is allowed and the raw output is
logged.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path

_LOG = logging.getLogger(__name__)

UNIT_MULTIPLIERS: dict[str, int] = {
    "K": 1024,
    "M": 1024 * 1024,
    "G": 1024 * 1024 * 1024,
    "T": 1024 * 1024 * 1024 * 1024,
}
"""Binary multipliers for the unit suffixes df -h prints."""

SIZE_PATTERN: re.Pattern = re.compile(r"^(\d+(?:[.,]\d+)?)([KMGT])$")
"""A df -h size such as ``100M`` or ``1.5G``."""


def parse_size(value: str) -> int | None:
    """Convert a df -h size to bytes, or None for an unknown format."""
    match = SIZE_PATTERN.match(value.strip())
    if not match:
        return None
    number, unit = match.groups()
    return int(float(number.replace(",", ".")) * UNIT_MULTIPLIERS[unit])


def parse_df_output(output: str) -> int | None:
    """Read the available bytes from ``df -h`` output.

    Args:
        output: Full stdout of df, header row included.

    Returns:
        Available bytes, or None if the output has an unexpected shape.
    """
    rows = output.strip().split("\n")
    if len(rows) < 2:
        return None

    # First row is the header
    columns = rows[1].split()
    if len(columns) <= 3:
        return None

    return parse_size(columns[3])


def _existing_ancestor(path: Path) -> Path:
    """Return ``path`` or its closest parent that exists."""
    path = path.resolve()
    while not path.exists() and path != path.parent:
        path = path.parent
    return path


async def bytes_available(path: Path) -> tuple[int, bool]:
    """Query the free space on the volume holding ``path``.

    Returns:
        Tuple of (available_bytes, ok). ``ok`` is False when df could not be
        run or its output could not be parsed; the byte count is then 0.
    """
    target = _existing_ancestor(path)
    try:
        proc = await asyncio.create_subprocess_exec(
            "df", "-h", "-P", str(target),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout_bytes, stderr_bytes = await proc.communicate()
    except OSError as e:
        _LOG.warning("Could not run df for %s: %s", target, e)
        return 0, False

    output = stdout_bytes.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        _LOG.warning(
            "df exited with code %s: %s",
            proc.returncode,
            stderr_bytes.decode("utf-8", errors="replace").strip(),
        )
        return 0, False

    available = parse_df_output(output)
    if available is None:
        _LOG.warning("Unexpected df output, skipping disc space check: %r", output)
        return 0, False

    _LOG.info("Volume holding %s has %d bytes available", target, available)
    return available, True


async def has_enough_space(path: Path, expected_size: int) -> bool:
    """Return True if more than ``expected_size`` bytes are free near ``path``.

    Fails open: an unreadable df result counts as enough space.
    """
    available, ok = await bytes_available(path)
    if not ok:
        return True
    return available > expected_size
