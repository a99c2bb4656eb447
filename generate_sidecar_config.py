import yaml
import argparse

from sidecar.config import (
    DEFAULT_CONSUL_ADDR,
    DEFAULT_KV_PATH,
    DEFAULT_TRAEFIK_API,
)


def generate_sidecar_config(node_id, node_backend, output_path='sidecar.yaml', poll_interval='10s'):
    config = {
        'node_id': node_id,
        'node_backend': node_backend,
        'traefik_api': DEFAULT_TRAEFIK_API,
        'consul_addr': DEFAULT_CONSUL_ADDR,
        'kv_path': DEFAULT_KV_PATH,
        'poll_interval': poll_interval,
        'request_timeout': '5s',
        'log_level': 'INFO',
    }

    with open(output_path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)

    print(f"Generated {output_path} for node {node_id}.")
    return config


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Generate sidecar.yaml for one node.')
    parser.add_argument('node_id', help='The node ID used to namespace published routes.')
    parser.add_argument('node_backend', help='URL traffic for this node should be sent to.')
    parser.add_argument('--output', default='sidecar.yaml', help='Where to write the file.')
    parser.add_argument('--poll-interval', default='10s', help='Sync interval, e.g. 10s or 1m.')
    args = parser.parse_args()
    generate_sidecar_config(args.node_id, args.node_backend, args.output, args.poll_interval)
