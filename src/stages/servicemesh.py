"""Service mesh stages.

The mesh depends on three observability operators that must be
subscribed first: Elasticsearch (in its own namespace), Jaeger and Kiali.
The mesh stage then subscribes the Service Mesh operator and builds the
workshop's control plane:

    namespace -> control plane -> per-user Jaeger RBAC -> member roll
    -> wait for Kiali -> heal Kiali and sidecar injector configuration
"""

from typing import Any

from actions import (
    CorrectConfigDriftAction,
    EnsureResourcesAction,
    PodRestart,
    ReplaceLine,
    ReplaceText,
    WorkloadReadyAction,
)
from config import OperatorConfig
import membership
import resources
from stages import operator_phases, register_stage
from workshop import SERVICE_MESH, Workshop

ELASTICSEARCH_OPERATOR = 'elasticsearch-operator'
JAEGER_OPERATOR = 'jaeger-product'
KIALI_OPERATOR = 'kiali-ossm'
SERVICE_MESH_OPERATOR = 'servicemeshoperator'

CONTROL_PLANE_NAME = 'full-install'
MEMBER_ROLL_NAME = 'default'

KIALI = 'kiali'
KIALI_CONFIG_KEY = 'config.yaml'
KIALI_APP_LABEL = ReplaceLine(
    marker='app_label_name:',
    replacement='  app_label_name: app.kubernetes.io/instance',
)

SIDECAR_INJECTOR_CONFIG = 'istio-sidecar-injector'
SIDECAR_INJECTOR_WORKLOAD = 'sidecarInjectorWebhook'
SIDECAR_INJECTOR_CONFIG_KEY = 'config'
SIDECAR_INJECTOR_LABEL = ReplaceText(
    old='index .ObjectMeta.Labels "app"',
    new='index .ObjectMeta.Labels "deploymentconfig"',
)


@register_stage
class ElasticSearchOperatorStage:
    """Install the Elasticsearch operator into its own namespace."""

    name = 'elasticsearch-operator'
    description = 'Subscribe to and approve the Elasticsearch operator'
    feature = SERVICE_MESH

    def get_phases(self, workshop: Workshop, config: OperatorConfig) -> list[tuple[str, Any, str]]:
        """Return phases for the Elasticsearch operator."""
        namespace = config.redhat_operators_namespace
        return operator_phases(
            ELASTICSEARCH_OPERATOR,
            namespace,
            workshop.spec.service_mesh.elastic_search_operator_hub,
            config,
            namespaces=(namespace,),
        )


@register_stage
class JaegerOperatorStage:
    """Install the Jaeger operator."""

    name = 'jaeger-operator'
    description = 'Subscribe to and approve the Jaeger operator'
    feature = SERVICE_MESH

    def get_phases(self, workshop: Workshop, config: OperatorConfig) -> list[tuple[str, Any, str]]:
        """Return phases for the Jaeger operator."""
        return operator_phases(
            JAEGER_OPERATOR,
            config.operators_namespace,
            workshop.spec.service_mesh.jaeger_operator_hub,
            config,
        )


@register_stage
class KialiOperatorStage:
    """Install the Kiali operator."""

    name = 'kiali-operator'
    description = 'Subscribe to and approve the Kiali operator'
    feature = SERVICE_MESH

    def get_phases(self, workshop: Workshop, config: OperatorConfig) -> list[tuple[str, Any, str]]:
        """Return phases for the Kiali operator."""
        return operator_phases(
            KIALI_OPERATOR,
            config.operators_namespace,
            workshop.spec.service_mesh.kiali_operator_hub,
            config,
        )


def user_rbac(users: int, namespace: str) -> list[dict]:
    """Role + RoleBinding per user granting read access to Jaeger."""
    objects = []
    for username in membership.usernames(users):
        role_name = f'{username}-jaeger'
        objects.append(resources.role(role_name, namespace, resources.jaeger_user_rules()))
        objects.append(resources.role_binding_user(role_name, namespace, username, role_name))
    return objects


@register_stage
class ServiceMeshStage:
    """Install the Service Mesh operator and the workshop control plane."""

    name = 'service-mesh'
    description = 'Install Service Mesh, control plane, user access and member roll'
    feature = SERVICE_MESH

    def get_phases(self, workshop: Workshop, config: OperatorConfig) -> list[tuple[str, Any, str]]:
        """Return phases for the mesh itself."""
        mesh_ns = config.mesh_namespace
        spec = workshop.spec
        members = membership.compute(spec.users, spec.staging_prefix)

        phases = operator_phases(
            SERVICE_MESH_OPERATOR,
            config.operators_namespace,
            spec.service_mesh.service_mesh_operator_hub,
            config,
        )
        phases += [
            ('resources-namespace', EnsureResourcesAction(
                name='mesh-namespace',
                objects=[resources.namespace(mesh_ns)],
            ), f'Create {mesh_ns} namespace'),

            # The control plane CRD only exists once the operator is installed
            ('resources-control-plane', EnsureResourcesAction(
                name='control-plane',
                objects=[resources.service_mesh_control_plane(CONTROL_PLANE_NAME, mesh_ns)],
                gated=True,
                requeue_after=config.requeue_after,
            ), 'Create ServiceMeshControlPlane'),

            ('resources-rbac', EnsureResourcesAction(
                name='user-rbac',
                objects=user_rbac(spec.users, mesh_ns),
            ), f'Grant Jaeger access to {spec.users} users'),

            ('resources-member-roll', EnsureResourcesAction(
                name='member-roll',
                objects=[resources.service_mesh_member_roll(MEMBER_ROLL_NAME, mesh_ns, members)],
            ), f'Create ServiceMeshMemberRoll with {len(members)} members'),

            ('ready-kiali', WorkloadReadyAction(
                name='kiali-ready',
                workload=KIALI,
                namespace=mesh_ns,
                requeue_after=config.requeue_after,
            ), 'Wait for Kiali to be running'),

            ('drift-kiali', CorrectConfigDriftAction(
                name='kiali-config',
                namespace=mesh_ns,
                config_map=KIALI,
                key=KIALI_CONFIG_KEY,
                rule=KIALI_APP_LABEL,
                restart=PodRestart(workload=KIALI, namespace=mesh_ns),
            ), 'Set Kiali app label to app.kubernetes.io/instance'),

            ('drift-sidecar-injector', CorrectConfigDriftAction(
                name='sidecar-injector-config',
                namespace=mesh_ns,
                config_map=SIDECAR_INJECTOR_CONFIG,
                key=SIDECAR_INJECTOR_CONFIG_KEY,
                rule=SIDECAR_INJECTOR_LABEL,
                restart=PodRestart(workload=SIDECAR_INJECTOR_WORKLOAD, namespace=mesh_ns),
            ), 'Key sidecar injection on the deploymentconfig label'),
        ]
        return phases
