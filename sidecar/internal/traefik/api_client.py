import requests
import logging
from typing import Dict, Any

from sidecar.internal.errors import (
    SnapshotDecodeError,
    SnapshotSchemaError,
    SnapshotStatusError,
    SnapshotTransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


def fetch_snapshot(source_url: str, timeout: float = DEFAULT_TIMEOUT) -> Dict[str, Any]:
    """Fetch the raw routing snapshot from Traefik's API.

    Args:
        source_url (str): Full URL of the rawdata endpoint, e.g.
            'http://localhost:8080/api/rawdata'.
        timeout (float, optional): Timeout for the request in seconds.

    Returns:
        Dict[str, Any]: The ``routers`` mapping, router name to descriptor.

    Raises:
        SnapshotTransportError: The request itself failed.
        SnapshotStatusError: Traefik answered with a non-2xx status.
        SnapshotDecodeError: The body was not a JSON object.
        SnapshotSchemaError: ``routers`` is missing or not an object.
    """
    try:
        response = requests.get(source_url, timeout=timeout)
    except requests.RequestException as e:
        raise SnapshotTransportError(f"failed to query Traefik: {e}", url=source_url) from e

    with response:
        if not 200 <= response.status_code < 300:
            raise SnapshotStatusError(
                f"bad Traefik response: HTTP {response.status_code}: {response.text}",
                url=source_url,
                status_code=response.status_code,
                body=response.text,
            )

        try:
            raw = response.json()
        except ValueError as e:
            raise SnapshotDecodeError(f"invalid JSON from Traefik: {e}", url=source_url) from e

    if not isinstance(raw, dict):
        raise SnapshotDecodeError(
            f"invalid JSON from Traefik: expected an object, got {type(raw).__name__}", url=source_url
        )
    if "routers" not in raw:
        raise SnapshotSchemaError("no routers found in Traefik response", url=source_url, reason="missing")

    routers = raw["routers"]
    if not isinstance(routers, dict):
        raise SnapshotSchemaError(
            f"routers field in Traefik response is {type(routers).__name__}, expected an object",
            url=source_url,
            reason="wrong_type",
        )

    logger.debug(f"Fetched {len(routers)} routers from {source_url}")
    return routers


class TraefikAPIClient:
    """Client for reading the runtime configuration of the local Traefik instance.

    Attributes:
        source_url (str): URL of Traefik's rawdata endpoint.
        timeout (float): Timeout applied to every request, in seconds.
    """

    def __init__(self, source_url: str, timeout: float = DEFAULT_TIMEOUT):
        self.source_url = source_url
        self.timeout = timeout
        logger.debug(f"Initialized TraefikAPIClient for {self.source_url}")

    def fetch_snapshot(self) -> Dict[str, Any]:
        return fetch_snapshot(self.source_url, timeout=self.timeout)
