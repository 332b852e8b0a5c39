"""Operator configuration management.

Configuration is loaded from an optional YAML file and environment
variables.

Resolution order for the file:
1. --config path given on the command line
2. $WORKSHOP_OPERATOR_CONFIG
3. none (built-in defaults)

Environment overrides (applied last):
- WORKSHOP_API_SERVER: cluster API URL
- WORKSHOP_TOKEN: bearer token
- WORKSHOP_NAMESPACE: namespace of the Workshop document
- WORKSHOP_INSECURE: "1"/"true" disables TLS verification

Example file:
    api_server: https://api.cluster.example.com:6443
    token_file: /var/run/secrets/kubernetes.io/serviceaccount/token
    verify_tls: true
    workshop:
      namespace: workshop-infra
      name: workshop
    requeue:
      after: 1
      pending_after: 5
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

IN_CLUSTER_API_SERVER = 'https://kubernetes.default.svc'
IN_CLUSTER_TOKEN_FILE = Path('/var/run/secrets/kubernetes.io/serviceaccount/token')
IN_CLUSTER_CA_FILE = Path('/var/run/secrets/kubernetes.io/serviceaccount/ca.crt')

_TRUTHY = ('1', 'true', 'yes', 'on')
_FALSY = ('0', 'false', 'no', 'off')


class ConfigError(Exception):
    """Configuration error."""


def _section(data: dict, key: str) -> dict:
    """Nested mapping at key ({} when absent)."""
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _flag(value, key: str) -> bool:
    """Boolean setting; YAML booleans or the usual true/false strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
    raise ConfigError(f"'{key}' must be true or false, got {value!r}")


@dataclass
class OperatorConfig:
    """Settings for the reconciler and its cluster client.

    Attributes:
        api_server: Cluster API URL
        token_file: Service account token, read when token is empty
        ca_file: CA bundle for TLS verification (None = system CAs)
        verify_tls: Verify the API server certificate
        request_timeout: HTTP timeout per API call in seconds
        workshop_namespace: Namespace of the Workshop document
        workshop_name: Name of the Workshop document
        requeue_after: Delay for not-ready workloads and gated resources
        pending_requeue_after: Delay while waiting for install plans
        operators_namespace: Namespace of the shared operator subscriptions
        redhat_operators_namespace: Namespace of the Elasticsearch operator
        mesh_namespace: Service mesh control plane namespace
    """
    api_server: str = IN_CLUSTER_API_SERVER
    token_file: Path = IN_CLUSTER_TOKEN_FILE
    ca_file: Optional[Path] = None
    verify_tls: bool = True
    request_timeout: float = 30.0
    workshop_namespace: str = 'workshop-infra'
    workshop_name: str = 'workshop'
    requeue_after: float = 1.0
    pending_requeue_after: float = 5.0
    operators_namespace: str = 'openshift-operators'
    redhat_operators_namespace: str = 'openshift-operators-redhat'
    mesh_namespace: str = 'istio-system'

    # Bearer token (from file, env or explicit set)
    _token: str = field(default='', init=False, repr=False)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'OperatorConfig':
        """Build config from a parsed YAML mapping.

        Raises:
            ConfigError: If a value has the wrong type
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("Operator config must be a mapping")

        config = cls()
        workshop = _section(data, 'workshop')
        requeue = _section(data, 'requeue')
        namespaces = _section(data, 'namespaces')

        if api_server := data.get('api_server'):
            config.api_server = str(api_server).rstrip('/')
        if token_file := data.get('token_file'):
            config.token_file = Path(token_file)
        if ca_file := data.get('ca_file'):
            config.ca_file = Path(ca_file)
        if 'verify_tls' in data:
            config.verify_tls = _flag(data['verify_tls'], 'verify_tls')
        if token := data.get('token'):
            config.set_token(str(token))

        config.workshop_namespace = workshop.get('namespace', config.workshop_namespace)
        config.workshop_name = workshop.get('name', config.workshop_name)
        config.operators_namespace = namespaces.get('operators', config.operators_namespace)
        config.redhat_operators_namespace = namespaces.get('redhat_operators', config.redhat_operators_namespace)
        config.mesh_namespace = namespaces.get('mesh', config.mesh_namespace)

        try:
            config.request_timeout = float(data.get('request_timeout', config.request_timeout))
            config.requeue_after = float(requeue.get('after', config.requeue_after))
            config.pending_requeue_after = float(requeue.get('pending_after', config.pending_requeue_after))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        if config.requeue_after <= 0 or config.pending_requeue_after <= 0:
            raise ConfigError("Requeue delays must be positive")
        return config

    def apply_env(self, environ: Optional[dict] = None) -> None:
        """Apply WORKSHOP_* environment overrides."""
        env = os.environ if environ is None else environ
        if api_server := env.get('WORKSHOP_API_SERVER'):
            self.api_server = api_server.rstrip('/')
        if token := env.get('WORKSHOP_TOKEN'):
            self.set_token(token)
        if namespace := env.get('WORKSHOP_NAMESPACE'):
            self.workshop_namespace = namespace
        if insecure := env.get('WORKSHOP_INSECURE'):
            self.verify_tls = insecure.lower() not in _TRUTHY

    def get_token(self) -> str:
        """Bearer token: explicit value, else contents of token_file."""
        if self._token:
            return self._token
        if self.token_file and self.token_file.exists():
            return self.token_file.read_text(encoding='utf-8').strip()
        return ''

    def set_token(self, token: str) -> None:
        self._token = token

    def tls_verify(self):
        """Value for requests' verify= argument."""
        if not self.verify_tls:
            return False
        if self.ca_file:
            return str(self.ca_file)
        if self.api_server == IN_CLUSTER_API_SERVER and IN_CLUSTER_CA_FILE.exists():
            return str(IN_CLUSTER_CA_FILE)
        return True


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    try:
        with open(path, encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e


def discover_config_path(explicit: Optional[str] = None) -> Optional[Path]:
    """Locate the operator config file.

    Raises:
        ConfigError: If an explicitly named file does not exist
    """
    if explicit:
        path = Path(explicit)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        return path

    if env_path := os.environ.get('WORKSHOP_OPERATOR_CONFIG'):
        path = Path(env_path)
        if path.exists():
            return path
        raise ConfigError(f"WORKSHOP_OPERATOR_CONFIG={env_path} does not exist")

    return None


def load_operator_config(path: Optional[str] = None) -> OperatorConfig:
    """Load operator config: file (if any), then environment overrides."""
    config_path = discover_config_path(path)
    if config_path is None:
        logger.debug("No operator config file, using defaults")
        config = OperatorConfig()
    else:
        logger.debug(f"Loading operator config from {config_path}")
        config = OperatorConfig.from_dict(_parse_yaml(config_path))
    config.apply_env()
    return config
