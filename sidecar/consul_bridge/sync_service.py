import logging
import os
import signal
import threading

from dotenv import load_dotenv

from sidecar.config import DEFAULT_LOG_LEVEL, SidecarConfig, configure_logging, load_config
from sidecar.internal.discovery.consul_client import ConsulKVClient
from sidecar.internal.errors import SidecarError
from sidecar.internal.traefik.api_client import TraefikAPIClient
from . import routing_config

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_SYNCING = "syncing"


class RouteSyncService:
    def __init__(self, config: SidecarConfig, traefik_client=None, consul_client=None):
        self.config = config
        self.traefik_client = traefik_client or TraefikAPIClient(config.traefik_api, timeout=config.request_timeout)
        self.consul_client = consul_client or ConsulKVClient(config.consul_addr, timeout=config.request_timeout)
        self.state = STATE_IDLE
        self.running = True
        self.stop_event = threading.Event()

    def sync_once(self):
        """Runs fetch, transform and publish. Errors propagate to the caller."""
        snapshot = self.traefik_client.fetch_snapshot()
        document = routing_config.build_publish_document(snapshot, self.config.identity)
        kv_path = self.config.kv_path
        self.consul_client.publish_document(kv_path, document)
        logger.info(f"Pushed {len(document.routers)} routers to Consul under {kv_path}")
        return document

    def run_cycle(self):
        """Runs one sync cycle. Returns True on success; failures are logged, never raised."""
        self.state = STATE_SYNCING
        try:
            self.sync_once()
            return True
        except SidecarError as e:
            logger.error(f"Sync cycle failed ({type(e).__name__}): {e}")
            return False
        except Exception:
            logger.exception("Unexpected error during sync cycle")
            return False
        finally:
            self.state = STATE_IDLE

    def run_forever(self):
        logger.info(
            f"Syncing routes for node '{self.config.node_id}' from {self.config.traefik_api} "
            f"to {self.config.consul_addr} every {self.config.poll_interval}s"
        )
        while self.running and not self.stop_event.is_set():
            self.run_cycle()
            # The wait returns early when shutdown() sets the event.
            self.stop_event.wait(self.config.poll_interval)
        logger.info("Route sync loop finished.")

    def start(self):
        logger.info("Starting route sync sidecar...")
        signal.signal(signal.SIGINT, self.shutdown)
        signal.signal(signal.SIGTERM, self.shutdown)
        self.run_forever()
        logger.info("Route sync sidecar stopped.")

    def shutdown(self, signum=None, frame=None):
        logger.info(f"Shutdown signal received ({signum if signum else 'programmatically'}). Stopping route sync sidecar...")
        self.running = False
        self.stop_event.set()


def main():
    load_dotenv()
    # Config loading logs its own warnings, so handlers must exist first.
    configure_logging(os.getenv('LOG_LEVEL') or DEFAULT_LOG_LEVEL)
    config = load_config()
    configure_logging(config.log_level)
    service = RouteSyncService(config)
    try:
        service.start()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received. Shutting down...")
    finally:
        if service.running:
            service.shutdown()


if __name__ == '__main__':
    main()
