"""Featured image attachment for a freshly created remote item.

Download the source image, upload it to the destination's media
library, then bind it as ``featured_media``. Any failure is logged and
swallowed: the remote item already exists and counts as forwarded.
"""

from __future__ import annotations

import logging

from forwarder.forward.models import Destination
from forwarder.integrations.wordpress import (
    DEFAULT_API_ROOT,
    RestResponse,
    TransportError,
    WordPressAPIClient,
    download,
    filename_from_url,
)

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 30
UPLOAD_TIMEOUT = 60
BIND_TIMEOUT = 30


class MediaAttacher:
    """Uploads and binds a featured image on a destination."""

    def __init__(
        self,
        *,
        api_root: str = DEFAULT_API_ROOT,
        download_timeout: float = DOWNLOAD_TIMEOUT,
        upload_timeout: float = UPLOAD_TIMEOUT,
        bind_timeout: float = BIND_TIMEOUT,
    ) -> None:
        self.api_root = api_root
        self.download_timeout = download_timeout
        self.upload_timeout = upload_timeout
        self.bind_timeout = bind_timeout

    def attach(
        self,
        remote_id: int | str,
        media_url: str,
        destination: Destination,
        content_type: str = "post",
    ) -> bool:
        """Attach *media_url* as the featured image of *remote_id*.

        Returns True when the image was bound, False otherwise. Never raises.
        """
        try:
            return self._attach(remote_id, media_url, destination, content_type)
        except Exception:
            logger.warning(
                "Featured image for %s on %s failed unexpectedly",
                remote_id,
                destination.key,
                exc_info=True,
            )
            return False

    def _attach(
        self,
        remote_id: int | str,
        media_url: str,
        destination: Destination,
        content_type: str,
    ) -> bool:
        try:
            image = download(media_url, timeout=self.download_timeout)
        except TransportError as exc:
            logger.warning("Could not download featured image %s: %s", media_url, exc)
            return False
        if not image.ok:
            logger.warning("Featured image %s returned HTTP %s", media_url, image.status)
            return False

        client = WordPressAPIClient(destination, api_root=self.api_root)
        filename = filename_from_url(media_url)
        try:
            upload = client.upload_media(
                filename,
                image.body,
                content_type=_header(image, "Content-Type"),
                timeout=self.upload_timeout,
            )
        except TransportError as exc:
            logger.warning("Media upload to %s failed: %s", destination.key, exc)
            return False
        media_id = upload.json_id() if upload.ok else None
        if media_id is None:
            logger.warning(
                "Media upload to %s returned HTTP %s without an id",
                destination.key,
                upload.status,
            )
            return False

        return self._bind(client, remote_id, media_id, content_type)

    def _bind(
        self,
        client: WordPressAPIClient,
        remote_id: int | str,
        media_id: int | str,
        content_type: str,
    ) -> bool:
        url = client.item_url(remote_id, content_type)
        payload = {"featured_media": media_id}
        for method in ("PUT", "POST"):
            try:
                response = client.request_json(method, url, payload, timeout=self.bind_timeout)
            except TransportError as exc:
                logger.warning("%s %s failed: %s", method, url, exc)
                continue
            if response.ok:
                logger.info(
                    "Set featured image %s on %s (%s)", media_id, client.destination.key, method
                )
                return True
            logger.warning("%s %s returned HTTP %s", method, url, response.status)
        return False


def _header(response: RestResponse, name: str) -> str | None:
    lowered = name.lower()
    for key, value in response.headers.items():
        if key.lower() == lowered:
            return value.split(";", 1)[0].strip() or None
    return None
