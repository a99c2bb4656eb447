import requests
import logging
from typing import Optional

from sidecar.internal.domain.models import PublishDocument
from sidecar.internal.errors import PublishError

logger = logging.getLogger(__name__)


class ConsulKVClient:
    def __init__(self, consul_addr, timeout=5.0):
        """
        Initializes the ConsulKVClient.
        Args:
            consul_addr (str): Base URL of the Consul agent (e.g., 'http://localhost:8500').
            timeout (float): Timeout for every KV request in seconds.
        """
        self.consul_addr = consul_addr.rstrip('/')
        self.timeout = timeout

    def _kv_url(self, key):
        return f"{self.consul_addr}/v1/kv/{key.lstrip('/')}"

    def put(self, key, payload: bytes):
        """
        Replaces the value stored at key. There is no merge with what was there before.
        Args:
            key (str): KV path, e.g. 'traefik/routing/nodes/node1/config'.
            payload (bytes): Serialized JSON document.
        Raises:
            PublishError: On transport failure or a non-2xx answer from Consul.
        """
        url = self._kv_url(key)
        try:
            response = requests.put(
                url,
                data=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise PublishError(f"Consul PUT failed: {e}", key=key) from e

        with response:
            if not 200 <= response.status_code < 300:
                raise PublishError(
                    f"Consul error: HTTP {response.status_code}: {response.text}",
                    key=key,
                    status_code=response.status_code,
                    body=response.text,
                )
        logger.debug(f"Wrote {len(payload)} bytes to Consul key {key}")

    def get(self, key) -> Optional[bytes]:
        """
        Reads the raw value stored at key.
        Returns:
            bytes or None: The stored value, or None when the key does not exist.
        """
        url = self._kv_url(key)
        try:
            response = requests.get(url, params={"raw": ""}, timeout=self.timeout)
        except requests.RequestException as e:
            raise PublishError(f"Consul GET failed: {e}", key=key) from e

        with response:
            if response.status_code == 404:
                return None
            if not 200 <= response.status_code < 300:
                raise PublishError(
                    f"Consul error: HTTP {response.status_code}: {response.text}",
                    key=key,
                    status_code=response.status_code,
                    body=response.text,
                )
            return response.content

    def publish_document(self, key, document: PublishDocument):
        """Serializes document and overwrites key with it. No retries."""
        payload = document.serialize()
        self.put(key, payload)

    def read_document(self, key) -> Optional[PublishDocument]:
        payload = self.get(key)
        if payload is None:
            return None
        return PublishDocument.deserialize(payload)
