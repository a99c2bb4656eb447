# sidecar/config.py
import yaml
import os
import re
import math
import logging
import threading
from typing import Dict, Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from sidecar.internal.domain.models import NodeIdentity

CONFIG_FILE_NAME = 'sidecar.yaml'
DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), CONFIG_FILE_NAME)

DEFAULT_TRAEFIK_API = 'http://localhost:8080/api/rawdata'
DEFAULT_CONSUL_ADDR = 'http://localhost:8500'
DEFAULT_NODE_ID = 'node1'
DEFAULT_NODE_BACKEND = 'http://127.0.0.1:80'
DEFAULT_KV_PATH = 'traefik/routing/nodes/%s/config'
DEFAULT_POLL_INTERVAL = 10.0  # seconds
DEFAULT_REQUEST_TIMEOUT = 5.0  # seconds
DEFAULT_LOG_LEVEL = 'INFO'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')
_DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}

logger = logging.getLogger(__name__)


class SidecarConfig(BaseModel):
    """Process configuration, built once at startup and never mutated."""
    model_config = ConfigDict(frozen=True)

    traefik_api: str = DEFAULT_TRAEFIK_API
    consul_addr: str = DEFAULT_CONSUL_ADDR
    identity: NodeIdentity
    poll_interval: float = DEFAULT_POLL_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def node_id(self) -> str:
        return self.identity.node_id

    @property
    def kv_path(self) -> str:
        return self.identity.kv_path


def parse_duration(value: str) -> float:
    """
    Parses a duration such as '300ms', '10s' or '1m30s' into seconds.
    A bare number is taken as seconds.

    Raises:
        ValueError: If the string is not a valid duration.
    """
    text = str(value).strip()
    if not text:
        raise ValueError("empty duration")
    try:
        return float(text)
    except ValueError:
        pass

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


def load_config_file(config_path: str) -> Dict[str, Any]:
    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
            logger.info(f"Successfully loaded configuration from {config_path}")
    except FileNotFoundError:
        logger.debug(f"Configuration file not found at {config_path}. Using environment variables and defaults.")
        return {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML configuration file {config_path}: {e}")
        return {}

    if config_data is None:
        return {}
    if not isinstance(config_data, dict):
        logger.error(f"Configuration file {config_path} does not contain a mapping. Ignoring it.")
        return {}
    return config_data


def _lookup(key: str, environ: Mapping[str, str], raw_config: Dict[str, Any], default: Any) -> Any:
    # Empty environment values count as unset.
    env_value = environ.get(key.upper())
    if env_value:
        return env_value
    file_value = raw_config.get(key)
    if file_value is not None and file_value != '':
        return file_value
    return default


def _duration_setting(key: str, environ: Mapping[str, str], raw_config: Dict[str, Any], default: float) -> float:
    value = _lookup(key, environ, raw_config, None)
    if value is None:
        return default
    try:
        seconds = parse_duration(value)
    except ValueError as e:
        logger.warning(f"Invalid duration for {key.upper()}: {e}. Using fallback: {default}s")
        return default
    if not math.isfinite(seconds) or seconds <= 0 or seconds > threading.TIMEOUT_MAX:
        logger.warning(f"Out-of-range duration for {key.upper()}: {value!r}. Using fallback: {default}s")
        return default
    return seconds


def load_config(config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> SidecarConfig:
    """
    Builds the process configuration. Environment variables take precedence
    over the YAML file, which takes precedence over the defaults.

    Args:
        config_path (str, optional): YAML file to read. Defaults to $SIDECAR_CONFIG,
            then sidecar.yaml at the project root.
        environ (Mapping, optional): Environment to read from. Defaults to os.environ.
    """
    if environ is None:
        environ = os.environ
    config_path = config_path or environ.get('SIDECAR_CONFIG') or DEFAULT_CONFIG_PATH
    raw_config = load_config_file(config_path)

    kv_path_template = str(_lookup('kv_path', environ, raw_config, DEFAULT_KV_PATH))
    if '%s' not in kv_path_template and '{node_id}' not in kv_path_template:
        logger.warning(f"KV_PATH '{kv_path_template}' has no node ID slot ('%s' or '{{node_id}}'). Using it verbatim.")

    identity = NodeIdentity(
        node_id=str(_lookup('node_id', environ, raw_config, DEFAULT_NODE_ID)),
        node_backend=str(_lookup('node_backend', environ, raw_config, DEFAULT_NODE_BACKEND)),
        kv_path_template=kv_path_template,
    )

    return SidecarConfig(
        traefik_api=str(_lookup('traefik_api', environ, raw_config, DEFAULT_TRAEFIK_API)),
        consul_addr=str(_lookup('consul_addr', environ, raw_config, DEFAULT_CONSUL_ADDR)),
        identity=identity,
        poll_interval=_duration_setting('poll_interval', environ, raw_config, DEFAULT_POLL_INTERVAL),
        request_timeout=_duration_setting('request_timeout', environ, raw_config, DEFAULT_REQUEST_TIMEOUT),
        log_level=str(_lookup('log_level', environ, raw_config, DEFAULT_LOG_LEVEL)).upper(),
    )


def configure_logging(log_level: str = DEFAULT_LOG_LEVEL):
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        logger.warning(f"Unknown LOG_LEVEL '{log_level}'. Falling back to INFO.")
        numeric_level = logging.INFO
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    # basicConfig is a no-op once handlers exist; the level still has to follow.
    logging.getLogger().setLevel(numeric_level)
    return numeric_level


if __name__ == '__main__':
    configure_logging(os.getenv('LOG_LEVEL') or DEFAULT_LOG_LEVEL)
    cfg = load_config()
    configure_logging(cfg.log_level)
    print(f"Loaded configuration for NODE_ID: {cfg.node_id}")
    print(f"Traefik API: {cfg.traefik_api}")
    print(f"Consul: {cfg.consul_addr}")
    print(f"KV Path: {cfg.kv_path}")
    print(f"Poll Interval: {cfg.poll_interval}s")
