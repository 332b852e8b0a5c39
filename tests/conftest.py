"""Shared pytest fixtures for workshop-operator tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from config import OperatorConfig  # noqa: E402
from store import MemoryStore  # noqa: E402

PIPELINE_CSV = 'openshift-pipelines-operator.v1.0.2'
SERVICE_MESH_CSV = 'servicemeshoperator.v1.1.0'
ELASTICSEARCH_CSV = 'elasticsearch-operator.4.4.0-202006211517'
JAEGER_CSV = 'jaeger-operator.v1.17.4'
KIALI_CSV = 'kiali-operator.v1.12.13'

KIALI_CONFIG = (
    'istio_namespace: istio-system\n'
    'istio_labels:\n'
    '  app_label_name: app\n'
    '  version_label_name: version\n'
)
SIDECAR_INJECTOR_CONFIG = (
    'policy: enabled\n'
    'template: |-\n'
    '  app: {{ index .ObjectMeta.Labels "app" }}\n'
)


def make_workshop_obj(users=3, pipeline=True, service_mesh=True, serverless=False,
                      name='workshop', namespace='workshop-infra'):
    """Workshop document as stored in the cluster."""
    return {
        'apiVersion': 'openshift.redhat.com/v1alpha1',
        'kind': 'Workshop',
        'metadata': {'name': name, 'namespace': namespace},
        'spec': {
            'user': {'number': users},
            'infrastructure': {
                'project': {'stagingName': 'cloudnative-app-'},
                'serverless': {'enabled': serverless},
                'pipeline': {
                    'enabled': pipeline,
                    'operatorHub': {'channel': 'ocp-4.4', 'clusterServiceVersion': PIPELINE_CSV},
                },
                'serviceMesh': {
                    'enabled': service_mesh,
                    'serviceMeshOperatorHub': {'channel': '1.0', 'clusterServiceVersion': SERVICE_MESH_CSV},
                    'elasticSearchOperatorHub': {'channel': '4.4', 'clusterServiceVersion': ELASTICSEARCH_CSV},
                    'jaegerOperatorHub': {'channel': 'stable', 'clusterServiceVersion': JAEGER_CSV},
                    'kialiOperatorHub': {'channel': 'stable', 'clusterServiceVersion': KIALI_CSV},
                },
            },
        },
    }


class Cluster:
    """Plays the part of OLM and the workload controllers on a MemoryStore."""

    def __init__(self, store: MemoryStore):
        self.store = store
        self._plans = 0

    def install_plan(self, namespace, csv, approved=False):
        """Publish an InstallPlan as OLM would after seeing a Subscription."""
        self._plans += 1
        name = f'install-{self._plans:05d}'
        self.store.create({
            'apiVersion': 'operators.coreos.com/v1alpha1',
            'kind': 'InstallPlan',
            'metadata': {'name': name, 'namespace': namespace},
            'spec': {
                'approval': 'Manual',
                'approved': approved,
                'clusterServiceVersionNames': [csv],
            },
        })
        return name

    def deployment(self, name, namespace, ready=True, replicas=1):
        available = replicas if ready else 0
        self.store.create({
            'apiVersion': 'apps/v1',
            'kind': 'Deployment',
            'metadata': {'name': name, 'namespace': namespace, 'generation': 1},
            'spec': {'replicas': replicas},
            'status': {
                'observedGeneration': 1,
                'replicas': replicas,
                'updatedReplicas': replicas,
                'availableReplicas': available,
            },
        })

    def config_map(self, name, namespace, data):
        self.store.create({
            'apiVersion': 'v1',
            'kind': 'ConfigMap',
            'metadata': {'name': name, 'namespace': namespace},
            'data': dict(data),
        })

    def pod(self, name, namespace, app, phase='Running'):
        self.store.create({
            'apiVersion': 'v1',
            'kind': 'Pod',
            'metadata': {'name': name, 'namespace': namespace, 'labels': {'app': app}},
            'status': {'phase': phase},
        })

    def publish_all_plans(self, config: OperatorConfig):
        """InstallPlans for every operator the sample workshop subscribes to."""
        self.install_plan(config.operators_namespace, PIPELINE_CSV)
        self.install_plan(config.redhat_operators_namespace, ELASTICSEARCH_CSV)
        self.install_plan(config.operators_namespace, JAEGER_CSV)
        self.install_plan(config.operators_namespace, KIALI_CSV)
        self.install_plan(config.operators_namespace, SERVICE_MESH_CSV)

    def mesh_workloads(self, config: OperatorConfig, kiali_config=KIALI_CONFIG,
                       injector_config=SIDECAR_INJECTOR_CONFIG):
        """What the control plane brings up in the mesh namespace."""
        ns = config.mesh_namespace
        self.deployment('kiali', ns)
        self.config_map('kiali', ns, {'config.yaml': kiali_config})
        self.config_map('istio-sidecar-injector', ns, {'config': injector_config})
        self.pod('kiali-7d9c6c8b5-x2k4p', ns, 'kiali')
        self.pod('istio-sidecar-injector-5f8b9-qz7lm', ns, 'sidecarInjectorWebhook')


@pytest.fixture
def store():
    """Empty in-memory object store."""
    return MemoryStore()


@pytest.fixture
def cluster(store):
    return Cluster(store)


@pytest.fixture
def config():
    """Operator config with default namespaces and delays."""
    return OperatorConfig(token_file=Path('/nonexistent/token'))


@pytest.fixture
def workshop_obj():
    """Sample Workshop with 3 users and every feature enabled."""
    return make_workshop_obj()


@pytest.fixture
def make_workshop():
    """Factory for Workshop documents with custom toggles."""
    return make_workshop_obj
