"""Kubernetes REST API object store.

Implements the ObjectStore protocol over the cluster API with requests.
Only the kinds the reconciler handles are mapped. HTTP errors are
translated into the store exception hierarchy:
- 409 on create -> AlreadyExists
- 409 on update -> Conflict
- 404 -> NotFound
- anything else >= 400, connection errors, timeouts -> StoreError
"""

import logging
from typing import Any, Optional

import requests
import urllib3

from config import OperatorConfig
from store import AlreadyExists, Conflict, NotFound, StoreError, describe, identity

logger = logging.getLogger(__name__)

# kind -> (API prefix, plural, namespaced)
RESOURCES: dict[str, tuple[str, str, bool]] = {
    'Namespace': ('api/v1', 'namespaces', False),
    'ConfigMap': ('api/v1', 'configmaps', True),
    'Pod': ('api/v1', 'pods', True),
    'Deployment': ('apis/apps/v1', 'deployments', True),
    'Role': ('apis/rbac.authorization.k8s.io/v1', 'roles', True),
    'RoleBinding': ('apis/rbac.authorization.k8s.io/v1', 'rolebindings', True),
    'Subscription': ('apis/operators.coreos.com/v1alpha1', 'subscriptions', True),
    'InstallPlan': ('apis/operators.coreos.com/v1alpha1', 'installplans', True),
    'ServiceMeshControlPlane': ('apis/maistra.io/v1', 'servicemeshcontrolplanes', True),
    'ServiceMeshMemberRoll': ('apis/maistra.io/v1', 'servicemeshmemberrolls', True),
    'Workshop': ('apis/openshift.redhat.com/v1alpha1', 'workshops', True),
}


class KubeStore:
    """ObjectStore backed by the Kubernetes API server."""

    def __init__(self, config: OperatorConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.base_url = config.api_server.rstrip('/')
        self.timeout = config.request_timeout
        self.session = session or requests.Session()
        self.session.headers.update({'Accept': 'application/json'})
        if token := config.get_token():
            self.session.headers['Authorization'] = f'Bearer {token}'
        self.session.verify = config.tls_verify()
        if self.session.verify is False:
            # Suppress SSL warnings for self-signed certs
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def _url(self, kind: str, namespace: str = '', name: str = '', subresource: str = '') -> str:
        if kind not in RESOURCES:
            raise StoreError(f"Unsupported kind: {kind}")
        prefix, plural, namespaced = RESOURCES[kind]
        parts = [self.base_url, prefix]
        if namespaced:
            if not namespace:
                raise StoreError(f"{kind} is namespaced but no namespace given")
            parts += ['namespaces', namespace]
        parts.append(plural)
        if name:
            parts.append(name)
        if subresource:
            parts.append(subresource)
        return '/'.join(parts)

    def _request(self, method: str, url: str, what: str, **kwargs: Any) -> requests.Response:
        logger.debug(f"{method} {url}")
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise StoreError(f"Timeout during {method} {what}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise StoreError(f"Cannot {method} {what}: {e}") from e
        return resp

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            message = resp.json().get('message', '')
        except ValueError:
            message = ''
        return message or resp.text[:200] or resp.reason or ''

    def _check(self, resp: requests.Response, what: str, on_conflict: type = Conflict) -> None:
        if resp.status_code < 400:
            return
        message = f"{what}: {resp.status_code} {self._error_message(resp)}"
        if resp.status_code == 404:
            raise NotFound(message, status=404)
        if resp.status_code == 409:
            raise on_conflict(message, status=409)
        raise StoreError(message, status=resp.status_code)

    def create(self, obj: dict) -> dict:
        kind, namespace, _ = identity(obj)
        what = describe(obj)
        resp = self._request('POST', self._url(kind, namespace), what, json=obj)
        self._check(resp, f"create {what}", on_conflict=AlreadyExists)
        return resp.json()

    def get(self, kind: str, namespace: str, name: str) -> dict:
        what = f"{kind} {namespace}/{name}"
        resp = self._request('GET', self._url(kind, namespace, name), what)
        self._check(resp, f"get {what}")
        return resp.json()

    def update(self, obj: dict) -> dict:
        kind, namespace, name = identity(obj)
        what = describe(obj)
        resp = self._request('PUT', self._url(kind, namespace, name), what, json=obj)
        self._check(resp, f"update {what}")
        return resp.json()

    def update_status(self, obj: dict) -> dict:
        kind, namespace, name = identity(obj)
        what = describe(obj)
        resp = self._request('PUT', self._url(kind, namespace, name, 'status'), what, json=obj)
        self._check(resp, f"update status of {what}")
        return resp.json()

    def delete(self, kind: str, namespace: str, name: str) -> None:
        what = f"{kind} {namespace}/{name}"
        resp = self._request('DELETE', self._url(kind, namespace, name), what)
        self._check(resp, f"delete {what}")

    def list(self, kind: str, namespace: str = '', labels: Optional[dict] = None) -> list[dict]:
        what = f"{kind} in {namespace or 'cluster'}"
        params = {}
        if labels:
            params['labelSelector'] = ','.join(f'{k}={v}' for k, v in sorted(labels.items()))
        resp = self._request('GET', self._url(kind, namespace), what, params=params)
        self._check(resp, f"list {what}")

        prefix = RESOURCES[kind][0]
        api_version = prefix.split('/', 1)[1] if prefix.startswith('apis/') else 'v1'
        items = resp.json().get('items', [])
        for item in items:
            # List responses omit per-item kind/apiVersion
            item.setdefault('kind', kind)
            item.setdefault('apiVersion', api_version)
        return items
