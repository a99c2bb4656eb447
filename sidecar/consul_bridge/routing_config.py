import logging
from typing import Optional

from sidecar.internal.domain.models import (
    CanonicalRouterEntry,
    CanonicalServiceEntry,
    NodeIdentity,
    PublishDocument,
    RoutingSnapshot,
)

logger = logging.getLogger(__name__)

# Traefik's own dashboard/API routers carry this provider suffix.
INTERNAL_ROUTER_SUFFIX = "@internal"
HOST_RULE_PREFIX = "Host("
RULE_QUOTE = "`"


def is_internal_router(name):
    return name.endswith(INTERNAL_ROUTER_SUFFIX)


def extract_hostname(rule: str) -> Optional[str]:
    """
    Returns the text between the first and last backtick of a rule, or None
    when the rule has no such pair.

    Args:
        rule (str): A Traefik rule, e.g. "Host(`app.example.com`)".
    """
    start = rule.find(RULE_QUOTE)
    end = rule.rfind(RULE_QUOTE)
    if start >= 0 and end > start:
        return rule[start + 1:end]
    return None


def router_entry_name(hostname, node_id):
    return f"{hostname.replace('.', '-')}@{node_id}"


def build_publish_document(snapshot: RoutingSnapshot, identity: NodeIdentity) -> PublishDocument:
    """
    Rewrites the host-based routers of a Traefik snapshot into the
    node-scoped document published to Consul.

    Routers that are internal, malformed, not host-based, or whose hostname
    cannot be extracted are skipped. Two routers mapping to the same name
    overwrite each other, the later one in snapshot order wins.

    Args:
        snapshot (dict): Router name to raw descriptor, as returned by the fetcher.
        identity (NodeIdentity): This node's identity.

    Returns:
        PublishDocument: Always holds exactly one service, named after the node.
    """
    service_name = identity.backend_service_name
    routers = {}

    for name, descriptor in snapshot.items():
        if is_internal_router(name):
            continue

        if not isinstance(descriptor, dict):
            logger.debug(f"Skipping router '{name}': descriptor is not an object")
            continue

        rule = descriptor.get("rule")
        if not isinstance(rule, str):
            logger.debug(f"Skipping router '{name}': rule is missing or not a string")
            continue

        if not rule.startswith(HOST_RULE_PREFIX):
            logger.debug(f"Skipping router '{name}': rule is not host-based ({rule})")
            continue

        hostname = extract_hostname(rule)
        if not hostname:
            logger.debug(f"Skipping router '{name}': no hostname in rule ({rule})")
            continue

        entry_name = router_entry_name(hostname, identity.node_id)
        if entry_name in routers:
            logger.debug(f"Router '{name}' overwrites existing entry '{entry_name}'")
        routers[entry_name] = CanonicalRouterEntry(rule=rule, service=service_name)

    services = {service_name: CanonicalServiceEntry([identity.node_backend])}
    return PublishDocument(routers=routers, services=services)
