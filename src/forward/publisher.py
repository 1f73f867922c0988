"""Remote publisher: the create-content call against one destination."""

from __future__ import annotations

import logging
from typing import Any

from forwarder.forward.models import DEFAULT_CONTENT_TYPE, Destination, PublishResult
from forwarder.integrations.wordpress import (
    DEFAULT_API_ROOT,
    TransportError,
    WordPressAPIClient,
)

logger = logging.getLogger(__name__)

CREATE_TIMEOUT = 30


class RemotePublisher:
    """POSTs a request body to a destination's create endpoint.

    Custom content types go to ``/{type}``; when that route is missing
    (404) the body is re-sent once to ``/posts`` with ``type`` set.
    No other retries are made.
    """

    def __init__(self, *, api_root: str = DEFAULT_API_ROOT, timeout: float = CREATE_TIMEOUT) -> None:
        self.api_root = api_root
        self.timeout = timeout

    def client_for(self, destination: Destination) -> WordPressAPIClient:
        return WordPressAPIClient(destination, api_root=self.api_root)

    def publish(
        self, destination: Destination, content_type: str, body: dict[str, Any]
    ) -> PublishResult:
        client = self.client_for(destination)
        url = client.collection_url(content_type)
        try:
            response = client.request_json("POST", url, body, timeout=self.timeout)
            if response.status == 404 and content_type != DEFAULT_CONTENT_TYPE:
                logger.info(
                    "No /%s route on %s, retrying via /posts", content_type, destination.key
                )
                url = client.collection_url(DEFAULT_CONTENT_TYPE)
                response = client.request_json(
                    "POST", url, {**body, "type": content_type}, timeout=self.timeout
                )
        except TransportError as exc:
            logger.warning("Could not reach %s at %s: %s", destination.key, url, exc)
            return PublishResult(ok=False, endpoint=url, error=str(exc))

        if not response.ok:
            logger.warning(
                "Destination %s rejected POST %s with HTTP %s",
                destination.key,
                url,
                response.status,
            )
            return PublishResult(ok=False, status_code=response.status, endpoint=url)

        remote_id = response.json_id()
        logger.info(
            "Created remote item %s on %s via %s", remote_id, destination.key, url
        )
        return PublishResult(
            ok=True, status_code=response.status, remote_id=remote_id, endpoint=url
        )
