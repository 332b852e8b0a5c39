"""Object payload builders.

Minimal manifests for the objects the reconciler installs. Only identity,
labels and the fields the install protocol relies on are filled in.
"""

from typing import Optional

MANAGED_BY_LABEL = 'app.kubernetes.io/managed-by'
MANAGED_BY = 'workshop-operator'

# Red Hat operator catalog
CATALOG_SOURCE = 'redhat-operators'
CATALOG_NAMESPACE = 'openshift-marketplace'


def _metadata(name: str, namespace: Optional[str] = None, labels: Optional[dict] = None) -> dict:
    metadata: dict = {
        'name': name,
        'labels': {MANAGED_BY_LABEL: MANAGED_BY, **(labels or {})},
    }
    if namespace:
        metadata['namespace'] = namespace
    return metadata


def namespace(name: str) -> dict:
    return {
        'apiVersion': 'v1',
        'kind': 'Namespace',
        'metadata': _metadata(name),
    }


def subscription(
    name: str,
    namespace_name: str,
    package: str,
    channel: str,
    starting_csv: str,
) -> dict:
    """OLM Subscription pinned to a version with manual install plan approval."""
    return {
        'apiVersion': 'operators.coreos.com/v1alpha1',
        'kind': 'Subscription',
        'metadata': _metadata(name, namespace_name),
        'spec': {
            'channel': channel,
            'installPlanApproval': 'Manual',
            'name': package,
            'source': CATALOG_SOURCE,
            'sourceNamespace': CATALOG_NAMESPACE,
            'startingCSV': starting_csv,
        },
    }


def jaeger_user_rules() -> list[dict]:
    """Read-only access to Jaeger resources for workshop users."""
    return [
        {
            'apiGroups': ['jaegertracing.io'],
            'resources': ['jaegers'],
            'verbs': ['get', 'list', 'watch'],
        },
    ]


def role(name: str, namespace_name: str, rules: list[dict]) -> dict:
    return {
        'apiVersion': 'rbac.authorization.k8s.io/v1',
        'kind': 'Role',
        'metadata': _metadata(name, namespace_name),
        'rules': rules,
    }


def role_binding_user(name: str, namespace_name: str, username: str, role_name: str, role_kind: str = 'Role') -> dict:
    return {
        'apiVersion': 'rbac.authorization.k8s.io/v1',
        'kind': 'RoleBinding',
        'metadata': _metadata(name, namespace_name),
        'roleRef': {
            'apiGroup': 'rbac.authorization.k8s.io',
            'kind': role_kind,
            'name': role_name,
        },
        'subjects': [
            {
                'apiGroup': 'rbac.authorization.k8s.io',
                'kind': 'User',
                'name': username,
            },
        ],
    }


def service_mesh_control_plane(name: str, namespace_name: str) -> dict:
    return {
        'apiVersion': 'maistra.io/v1',
        'kind': 'ServiceMeshControlPlane',
        'metadata': _metadata(name, namespace_name),
        'spec': {
            'istio': {
                'global': {'mtls': {'enabled': False}},
                'gateways': {'istio-egressgateway': {'autoscaleEnabled': False}},
                'kiali': {'enabled': True},
                'tracing': {'enabled': True},
            },
        },
    }


def service_mesh_member_roll(name: str, namespace_name: str, members: list[str]) -> dict:
    return {
        'apiVersion': 'maistra.io/v1',
        'kind': 'ServiceMeshMemberRoll',
        'metadata': _metadata(name, namespace_name),
        'spec': {'members': list(members)},
    }
