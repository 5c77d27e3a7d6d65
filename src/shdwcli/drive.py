"""Helpers for files hosted on the drive."""

import logging
import re
from pathlib import PurePath
from typing import Mapping, Optional

import httpx

from .config import ServiceConfig
from .signing import Pubkey
from .types import BasenameError, DriveRequestError, ValidationError

_logger = logging.getLogger(__name__)

_FILESIZE_RE = re.compile(r"^\s*(\d+)\s*(B|KB|MB|GB)\s*$", re.IGNORECASE)


def drive_url(storage_account: Pubkey, filename: str, config: Optional[ServiceConfig] = None) -> str:
    """Build the public URL of ``filename`` in ``storage_account``."""
    config = config or ServiceConfig()
    return f"{config.drive_url}/{storage_account}/{filename}"


def acquire_basename(path: str) -> str:
    """Return the final component of ``path``, used as the upload name.

    Raises:
        BasenameError: If the path has no file name (empty, root, ``.``
            or ``..``).
    """
    name = PurePath(path).name if path else ""
    if not name or name == "..":
        raise BasenameError(f"not a valid path {path!r}")
    return name


def is_text_response(headers: Mapping[str, str]) -> bool:
    """True only when Content-Type is exactly ``text/plain``.

    Parameters such as ``; charset=utf-8`` are not accepted.
    """
    return headers.get("content-type") == "text/plain"


def last_modified(headers: Mapping[str, str]) -> str:
    """Return the Last-Modified header unaltered."""
    value = headers.get("last-modified")
    if value is None:
        raise ValidationError("'last modified' header not found")
    return value


async def get_text(url: str, http_client: Optional[httpx.AsyncClient] = None) -> httpx.Response:
    """HEAD ``url`` to check it is a text file, then GET it.

    Raises:
        ValidationError: If the file is not served as text/plain.
        DriveRequestError: On transport failure or a non-2xx GET.
    """
    client = http_client or httpx.AsyncClient(timeout=None)
    try:
        _logger.debug("HEAD %s", url)
        head = await client.head(url)
        if not is_text_response(head.headers):
            raise ValidationError(f"Not a text file at url {url}")
        _logger.debug("GET %s", url)
        response = await client.get(url)
    except httpx.HTTPError as exc:
        raise DriveRequestError(f"Request to {url} failed: {exc}") from exc
    finally:
        if http_client is None:
            await client.aclose()

    if not response.is_success:
        raise DriveRequestError(f"HTTP {response.status_code} from {url}")
    return response


def parse_filesize(size: str) -> str:
    """Validate a size such as ``"10MB"`` and return it normalized.

    Raises:
        ValueError: If ``size`` is not a number followed by B, KB, MB or GB.
    """
    match = _FILESIZE_RE.match(size)
    if match is None:
        raise ValueError(
            f"invalid filesize {size!r}, expected a number followed by KB, MB, GB"
        )
    amount, unit = match.groups()
    return f"{int(amount)}{unit.upper()}"
