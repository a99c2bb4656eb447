from sidecar.consul_bridge.sync_service import main

main()
