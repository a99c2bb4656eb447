import json
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict

from sidecar.internal.errors import SerializationError

# Router name -> raw descriptor as decoded from the Traefik API.
RoutingSnapshot = Dict[str, Any]

DEFAULT_ENTRY_POINTS = ("web", "websecure")
DEFAULT_CERT_RESOLVER = "letsencrypt"
ROUTER_STATUS_ENABLED = "enabled"


class NodeIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    node_id: str
    node_backend: str
    kv_path_template: str

    @property
    def backend_service_name(self) -> str:
        return f"{self.node_id}-backend"

    @property
    def kv_path(self) -> str:
        """KV key for this node, with the node ID substituted into the template."""
        if "%s" in self.kv_path_template:
            path = self.kv_path_template.replace("%s", self.node_id, 1)
        else:
            path = self.kv_path_template.replace("{node_id}", self.node_id)
        return path.lstrip("/")


class CanonicalRouterEntry:
    def __init__(self, rule: str, service: str, entry_points: List[str] = None,
                 status: str = ROUTER_STATUS_ENABLED, cert_resolver: str = DEFAULT_CERT_RESOLVER):
        self.rule = rule
        self.service = service
        self.entry_points = list(entry_points) if entry_points is not None else list(DEFAULT_ENTRY_POINTS)
        self.status = status
        self.cert_resolver = cert_resolver

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule": self.rule,
            "service": self.service,
            "entryPoints": list(self.entry_points),
            "status": self.status,
            "tls": {"certResolver": self.cert_resolver},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CanonicalRouterEntry":
        return cls(
            rule=data["rule"],
            service=data["service"],
            entry_points=data.get("entryPoints", DEFAULT_ENTRY_POINTS),
            status=data.get("status", ROUTER_STATUS_ENABLED),
            cert_resolver=data.get("tls", {}).get("certResolver", DEFAULT_CERT_RESOLVER),
        )

    def __eq__(self, other):
        if not isinstance(other, CanonicalRouterEntry):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"CanonicalRouterEntry(rule={self.rule!r}, service={self.service!r})"


class CanonicalServiceEntry:
    def __init__(self, urls: List[str]):
        self.urls = list(urls)

    def to_dict(self) -> Dict[str, Any]:
        return {"loadBalancer": {"servers": [{"url": url} for url in self.urls]}}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CanonicalServiceEntry":
        servers = data.get("loadBalancer", {}).get("servers", [])
        return cls([server["url"] for server in servers])

    def __eq__(self, other):
        if not isinstance(other, CanonicalServiceEntry):
            return NotImplemented
        return self.urls == other.urls

    def __repr__(self):
        return f"CanonicalServiceEntry(urls={self.urls!r})"


class PublishDocument:
    """The complete value written to a node's KV key.

    On the wire both namespaces sit under a top-level ``http`` object, which
    is the layout Traefik's KV provider reads. The stored value is always
    replaced wholesale.
    """

    def __init__(self, routers: Dict[str, CanonicalRouterEntry] = None,
                 services: Dict[str, CanonicalServiceEntry] = None):
        self.routers = routers if routers is not None else {}
        self.services = services if services is not None else {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "http": {
                "routers": {name: entry.to_dict() for name, entry in self.routers.items()},
                "services": {name: entry.to_dict() for name, entry in self.services.items()},
            }
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PublishDocument":
        http = data.get("http", {})
        return cls(
            routers={name: CanonicalRouterEntry.from_dict(entry) for name, entry in http.get("routers", {}).items()},
            services={name: CanonicalServiceEntry.from_dict(entry) for name, entry in http.get("services", {}).items()},
        )

    def serialize(self) -> bytes:
        try:
            return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"marshal failed: {e}") from e

    @classmethod
    def deserialize(cls, payload: bytes) -> "PublishDocument":
        return cls.from_dict(json.loads(payload.decode("utf-8")))

    def __eq__(self, other):
        if not isinstance(other, PublishDocument):
            return NotImplemented
        return self.routers == other.routers and self.services == other.services

    def __repr__(self):
        return f"PublishDocument(routers={sorted(self.routers)}, services={sorted(self.services)})"
