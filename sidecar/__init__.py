"""Route sync sidecar.

Periodically reads the host-based routers of the local Traefik instance and
publishes them, rewritten for this node, into Consul KV so every proxy in the
fleet can serve them.
"""

__version__ = "0.1.0"
