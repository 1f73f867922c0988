"""WordPress REST API transport — Basic auth over urllib.

Shared by the remote publisher and the media attacher. Unlike a typical
client, non-2xx responses are returned rather than raised: callers decide
on fallbacks from the status code.
"""

from __future__ import annotations

import base64
import json
import logging
import mimetypes
import secrets
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote, urlparse

from forwarder.forward.models import DEFAULT_CONTENT_TYPE, Destination

logger = logging.getLogger(__name__)

DEFAULT_API_ROOT = "wp-json/wp/v2"
DEFAULT_FILENAME = "featured-image.jpg"


class TransportError(Exception):
    """The request never produced an HTTP response."""


@dataclass
class RestResponse:
    """Status, headers and raw body of one HTTP exchange."""

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decoded JSON body, or None if the body is not JSON."""
        try:
            return json.loads(self.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None

    def json_id(self) -> int | str | None:
        """The ``id`` of a JSON object body; anything but an int or str yields None."""
        data = self.json()
        if not isinstance(data, dict):
            return None
        value = data.get("id")
        if isinstance(value, bool):
            return None
        if isinstance(value, float):
            return int(value) if value.is_integer() else None
        if isinstance(value, (int, str)):
            return value
        return None


def send(request: urllib.request.Request, timeout: float) -> RestResponse:
    """Send *request*, turning HTTP error statuses into a RestResponse.

    Raises:
        TransportError: On DNS, connection or timeout failures.
    """
    try:
        with urllib.request.urlopen(request, timeout=timeout) as resp:
            return RestResponse(
                status=resp.status,
                body=resp.read(),
                headers=dict(resp.headers.items()) if resp.headers else {},
            )
    except urllib.error.HTTPError as exc:
        body = exc.read() if exc.fp is not None else b""
        headers = dict(exc.headers.items()) if exc.headers else {}
        return RestResponse(status=exc.code, body=body, headers=headers)
    except (urllib.error.URLError, OSError, ValueError) as exc:
        raise TransportError(str(getattr(exc, "reason", exc))) from exc


def filename_from_url(url: str) -> str:
    """Last path segment of *url*, or a default when it has no extension."""
    name = unquote(urlparse(url).path.rstrip("/").rsplit("/", 1)[-1])
    if not name or "." not in name:
        return DEFAULT_FILENAME
    return name


def download(url: str, timeout: float = 30) -> RestResponse:
    """Fetch a public URL without credentials."""
    req = urllib.request.Request(url, method="GET")
    return send(req, timeout)


class WordPressAPIClient:
    """Client for one destination's ``wp/v2`` REST API."""

    def __init__(self, destination: Destination, api_root: str = DEFAULT_API_ROOT) -> None:
        self.destination = destination
        self.base_url = destination.base_url.rstrip("/")
        self.api_root = api_root.strip("/")

    def _auth_header(self) -> str:
        raw = f"{self.destination.user}:{self.destination.secret}".encode()
        return "Basic " + base64.b64encode(raw).decode("ascii")

    def collection_url(self, content_type: str = DEFAULT_CONTENT_TYPE) -> str:
        """Create endpoint: ``/posts`` for posts, ``/{type}`` otherwise."""
        route = "posts" if content_type == DEFAULT_CONTENT_TYPE else content_type
        return f"{self.base_url}/{self.api_root}/{route}"

    def item_url(self, remote_id: int | str, content_type: str = DEFAULT_CONTENT_TYPE) -> str:
        return f"{self.collection_url(content_type)}/{remote_id}"

    @property
    def media_url(self) -> str:
        return f"{self.base_url}/{self.api_root}/media"

    def request_json(
        self, method: str, url: str, data: dict[str, Any], timeout: float = 30
    ) -> RestResponse:
        """Send an authenticated JSON request."""
        req = urllib.request.Request(
            url,
            data=json.dumps(data).encode("utf-8"),
            method=method,
            headers={
                "Authorization": self._auth_header(),
                "Content-Type": "application/json",
            },
        )
        logger.debug("%s %s", method, url)
        return send(req, timeout)

    def upload_media(
        self,
        filename: str,
        data: bytes,
        content_type: str | None = None,
        timeout: float = 60,
    ) -> RestResponse:
        """Upload a file as single-part multipart form data (field ``file``)."""
        boundary = secrets.token_hex(12)
        mime = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        disposition = f'Content-Disposition: form-data; name="file"; filename="{filename}"\r\n'
        body = b"".join(
            [
                f"--{boundary}\r\n".encode(),
                disposition.encode(),
                f"Content-Type: {mime}\r\n\r\n".encode(),
                data,
                f"\r\n--{boundary}--\r\n".encode(),
            ]
        )
        req = urllib.request.Request(
            self.media_url,
            data=body,
            method="POST",
            headers={
                "Authorization": self._auth_header(),
                "Content-Type": f"multipart/form-data; boundary={boundary}",
                "Content-Disposition": f'attachment; filename="{filename}"',
            },
        )
        logger.debug("POST %s (%d bytes)", self.media_url, len(data))
        return send(req, timeout)
