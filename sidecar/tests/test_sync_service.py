import threading
from unittest.mock import MagicMock

from sidecar.config import SidecarConfig
from sidecar.consul_bridge import sync_service
from sidecar.consul_bridge.sync_service import STATE_IDLE, RouteSyncService
from sidecar.internal.domain.models import NodeIdentity
from sidecar.internal.errors import PublishError, SnapshotTransportError

SNAPSHOT = {
    "api@internal": {"rule": "PathPrefix(`/api`)"},
    "whoami": {"rule": "Host(`whoami.example.com`)"},
}


def _config(poll_interval=10.0):
    identity = NodeIdentity(node_id="node1", node_backend="http://127.0.0.1:80",
                            kv_path_template="traefik/routing/nodes/%s/config")
    return SidecarConfig(identity=identity, poll_interval=poll_interval)


def test_run_cycle_publishes_document_under_node_key(caplog):
    caplog.set_level("INFO")
    traefik = MagicMock()
    traefik.fetch_snapshot.return_value = SNAPSHOT
    consul = MagicMock()
    service = RouteSyncService(_config(), traefik_client=traefik, consul_client=consul)

    assert service.run_cycle() is True

    key, document = consul.publish_document.call_args[0]
    assert key == "traefik/routing/nodes/node1/config"
    assert list(document.routers) == ["whoami-example-com@node1"]
    assert "Pushed 1 routers to Consul under traefik/routing/nodes/node1/config" in caplog.text
    assert service.state == STATE_IDLE


def test_fetch_failure_skips_publish():
    traefik = MagicMock()
    traefik.fetch_snapshot.side_effect = SnapshotTransportError("failed to query Traefik: refused")
    consul = MagicMock()
    service = RouteSyncService(_config(), traefik_client=traefik, consul_client=consul)

    assert service.run_cycle() is False

    consul.publish_document.assert_not_called()
    assert service.state == STATE_IDLE


def test_publish_failure_does_not_stop_next_cycle(caplog):
    traefik = MagicMock()
    traefik.fetch_snapshot.return_value = SNAPSHOT
    consul = MagicMock()
    consul.publish_document.side_effect = [PublishError("Consul error: HTTP 500", status_code=500), None]
    service = RouteSyncService(_config(), traefik_client=traefik, consul_client=consul)

    assert service.run_cycle() is False
    assert service.run_cycle() is True

    assert traefik.fetch_snapshot.call_count == 2
    assert consul.publish_document.call_count == 2
    assert "PublishError" in caplog.text


def test_unexpected_error_is_contained():
    traefik = MagicMock()
    traefik.fetch_snapshot.side_effect = RuntimeError("boom")
    service = RouteSyncService(_config(), traefik_client=traefik, consul_client=MagicMock())

    assert service.run_cycle() is False


def test_loop_runs_every_interval_until_shutdown():
    traefik = MagicMock()
    consul = MagicMock()
    service = RouteSyncService(_config(poll_interval=0.01), traefik_client=traefik, consul_client=consul)
    cycles = []

    def fetch():
        cycles.append(len(cycles))
        if len(cycles) == 1:
            raise SnapshotTransportError("first cycle fails")
        if len(cycles) == 3:
            service.shutdown()
        return SNAPSHOT

    traefik.fetch_snapshot.side_effect = fetch

    service.run_forever()

    assert len(cycles) == 3
    assert consul.publish_document.call_count == 2
    assert service.running is False


def test_shutdown_interrupts_idle_wait():
    service = RouteSyncService(_config(poll_interval=3600), traefik_client=MagicMock(), consul_client=MagicMock())
    service.traefik_client.fetch_snapshot.return_value = {}
    worker = threading.Thread(target=service.run_forever, daemon=True)
    worker.start()

    service.shutdown()
    worker.join(timeout=5)

    assert not worker.is_alive()


def test_main_configures_logging_before_loading_config(monkeypatch):
    calls = []
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setattr(sync_service, "load_dotenv", lambda: None)
    monkeypatch.setattr(sync_service, "configure_logging", lambda level: calls.append(("logging", level)))

    def fake_load_config():
        calls.append(("config", None))
        return _config()

    monkeypatch.setattr(sync_service, "load_config", fake_load_config)
    service_class = MagicMock()
    monkeypatch.setattr(sync_service, "RouteSyncService", service_class)

    sync_service.main()

    assert calls == [("logging", "DEBUG"), ("config", None), ("logging", "INFO")]
    service_class.return_value.start.assert_called_once()
