"""Workshop desired-state document.

The Workshop is a user-authored custom resource declaring which platform
add-ons to install. Its spec holds per-feature toggles and operator
subscription references; its status holds one install state per feature.

Example:
    apiVersion: openshift.redhat.com/v1alpha1
    kind: Workshop
    metadata:
      name: workshop
      namespace: workshop-infra
    spec:
      user:
        number: 3
      infrastructure:
        project:
          stagingName: cloudnative-app-
        pipeline:
          enabled: true
          operatorHub:
            channel: ocp-4.4
            clusterServiceVersion: openshift-pipelines-operator.v1.0.2
        serviceMesh:
          enabled: true
          serviceMeshOperatorHub: {channel: "1.0", clusterServiceVersion: servicemeshoperator.v1.1.0}
          elasticSearchOperatorHub: {channel: "4.4", clusterServiceVersion: elasticsearch-operator.4.4.0}
          jaegerOperatorHub: {channel: stable, clusterServiceVersion: jaeger-operator.v1.17.2}
          kialiOperatorHub: {channel: stable, clusterServiceVersion: kiali-operator.v1.12.7}
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

WORKSHOP_API_VERSION = 'openshift.redhat.com/v1alpha1'
WORKSHOP_KIND = 'Workshop'

# Feature keys (also the status field names)
PIPELINE = 'pipeline'
SERVICE_MESH = 'serviceMesh'

DEFAULT_STAGING_PREFIX = 'cloudnative-app-'


class WorkshopError(Exception):
    """Malformed Workshop document."""


class InstallState:
    """Per-feature install state values stored in Workshop.status.

    Only INSTALLED is ever persisted; INSTALLING is derived for an enabled
    feature that has not reached INSTALLED yet.
    """
    NOT_INSTALLED = 'NotInstalled'
    INSTALLING = 'Installing'
    INSTALLED = 'Installed'

    ALL = (NOT_INSTALLED, INSTALLING, INSTALLED)


@dataclass
class OperatorHubRef:
    """Subscription reference: catalog channel and pinned version.

    Attributes:
        channel: Catalog channel to subscribe to
        cluster_service_version: Target version (CSV name) to install
    """
    channel: str = ''
    cluster_service_version: str = ''

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'OperatorHubRef':
        data = data or {}
        return cls(
            channel=str(data.get('channel', '')),
            cluster_service_version=str(data.get('clusterServiceVersion', '')),
        )

    def validate(self, where: str) -> None:
        if not self.channel:
            raise WorkshopError(f"{where}: channel is required")
        if not self.cluster_service_version:
            raise WorkshopError(f"{where}: clusterServiceVersion is required")


@dataclass
class PipelineSpec:
    enabled: bool = False
    operator_hub: OperatorHubRef = field(default_factory=OperatorHubRef)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'PipelineSpec':
        data = data or {}
        return cls(
            enabled=bool(data.get('enabled', False)),
            operator_hub=OperatorHubRef.from_dict(data.get('operatorHub')),
        )


@dataclass
class ServiceMeshSpec:
    """Service mesh and the observability operators it depends on."""
    enabled: bool = False
    service_mesh_operator_hub: OperatorHubRef = field(default_factory=OperatorHubRef)
    elastic_search_operator_hub: OperatorHubRef = field(default_factory=OperatorHubRef)
    jaeger_operator_hub: OperatorHubRef = field(default_factory=OperatorHubRef)
    kiali_operator_hub: OperatorHubRef = field(default_factory=OperatorHubRef)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'ServiceMeshSpec':
        data = data or {}
        return cls(
            enabled=bool(data.get('enabled', False)),
            service_mesh_operator_hub=OperatorHubRef.from_dict(data.get('serviceMeshOperatorHub')),
            elastic_search_operator_hub=OperatorHubRef.from_dict(data.get('elasticSearchOperatorHub')),
            jaeger_operator_hub=OperatorHubRef.from_dict(data.get('jaegerOperatorHub')),
            kiali_operator_hub=OperatorHubRef.from_dict(data.get('kialiOperatorHub')),
        )


@dataclass
class WorkshopSpec:
    """Parsed Workshop.spec.

    Attributes:
        users: Number of workshop users
        staging_prefix: Prefix of per-user staging projects ({prefix}{id})
        pipeline: Pipeline engine feature
        service_mesh: Service mesh feature
        serverless_enabled: Serverless needs the mesh, so it also enables it
    """
    users: int = 0
    staging_prefix: str = DEFAULT_STAGING_PREFIX
    pipeline: PipelineSpec = field(default_factory=PipelineSpec)
    service_mesh: ServiceMeshSpec = field(default_factory=ServiceMeshSpec)
    serverless_enabled: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'WorkshopSpec':
        data = data or {}
        infrastructure = data.get('infrastructure') or {}
        project = infrastructure.get('project') or {}

        users = (data.get('user') or {}).get('number', 0)
        if not isinstance(users, int) or isinstance(users, bool) or users < 0:
            raise WorkshopError(f"spec.user.number must be a non-negative integer, got {users!r}")

        return cls(
            users=users,
            staging_prefix=project.get('stagingName') or DEFAULT_STAGING_PREFIX,
            pipeline=PipelineSpec.from_dict(infrastructure.get('pipeline')),
            service_mesh=ServiceMeshSpec.from_dict(infrastructure.get('serviceMesh')),
            serverless_enabled=bool((infrastructure.get('serverless') or {}).get('enabled', False)),
        )

    def feature_enabled(self, feature: str) -> bool:
        if feature == PIPELINE:
            return self.pipeline.enabled
        if feature == SERVICE_MESH:
            return self.service_mesh.enabled or self.serverless_enabled
        raise KeyError(feature)

    def validate(self) -> None:
        """Check that every enabled feature names its subscriptions.

        Raises:
            WorkshopError: On the first missing reference
        """
        if self.feature_enabled(PIPELINE):
            self.pipeline.operator_hub.validate('pipeline.operatorHub')
        if self.feature_enabled(SERVICE_MESH):
            mesh = self.service_mesh
            mesh.elastic_search_operator_hub.validate('serviceMesh.elasticSearchOperatorHub')
            mesh.jaeger_operator_hub.validate('serviceMesh.jaegerOperatorHub')
            mesh.kiali_operator_hub.validate('serviceMesh.kialiOperatorHub')
            mesh.service_mesh_operator_hub.validate('serviceMesh.serviceMeshOperatorHub')


class Workshop:
    """A Workshop document: raw object plus parsed spec.

    The raw object is kept so status writes carry the resourceVersion the
    document was read at.
    """

    def __init__(self, obj: dict):
        if obj.get('kind', WORKSHOP_KIND) != WORKSHOP_KIND:
            raise WorkshopError(f"Expected kind {WORKSHOP_KIND}, got {obj.get('kind')}")
        metadata = obj.get('metadata') or {}
        if not metadata.get('name'):
            raise WorkshopError("Workshop has no metadata.name")
        if not isinstance(obj.get('spec') or {}, dict):
            raise WorkshopError("Workshop spec must be a mapping")

        self.obj = copy.deepcopy(obj)
        self.obj.setdefault('apiVersion', WORKSHOP_API_VERSION)
        self.obj.setdefault('kind', WORKSHOP_KIND)
        self.spec = WorkshopSpec.from_dict(self.obj.get('spec'))

    @property
    def name(self) -> str:
        return self.obj['metadata']['name']

    @property
    def namespace(self) -> str:
        return self.obj['metadata'].get('namespace', '')

    @property
    def status(self) -> dict:
        status = self.obj.get('status')
        if not isinstance(status, dict):
            status = {}
            self.obj['status'] = status
        return status

    def state(self, feature: str) -> str:
        """Effective install state of a feature."""
        if self.status.get(feature) == InstallState.INSTALLED:
            return InstallState.INSTALLED
        if self.spec.feature_enabled(feature):
            return InstallState.INSTALLING
        return InstallState.NOT_INSTALLED

    def to_dict(self) -> dict:
        return copy.deepcopy(self.obj)


def load_workshop(file_path: Optional[str] = None, json_str: Optional[str] = None) -> Workshop:
    """Load a Workshop from a YAML/JSON file or an inline JSON string.

    Raises:
        WorkshopError: If no source is given, the file is missing or the
            document is malformed
    """
    if json_str:
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise WorkshopError(f"Invalid workshop JSON: {e}") from e
    elif file_path:
        path = Path(file_path)
        if not path.exists():
            raise WorkshopError(f"Workshop file not found: {path}")
        with open(path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
        logger.debug(f"Loaded workshop from {path}")
    else:
        raise WorkshopError("No workshop source given")

    if not isinstance(data, dict):
        raise WorkshopError("Workshop document must be a mapping")
    return Workshop(data)


def fetch_workshop(store, namespace: str, name: str) -> Workshop:
    """Read the current Workshop document from the object store."""
    return Workshop(store.get(WORKSHOP_KIND, namespace, name))
