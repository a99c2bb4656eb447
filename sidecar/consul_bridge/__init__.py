"""Consul bridge for Traefik routes

This package provides the sync service that polls the local Traefik API,
rewrites its host-based routers into a node-scoped document and replaces
this node's key in Consul KV with it.
"""

from . import routing_config
from .sync_service import RouteSyncService

__all__ = ['routing_config', 'RouteSyncService']
