"""Object store interface and an in-memory implementation.

Objects are plain Kubernetes-style dicts (apiVersion, kind, metadata, ...).
Identity is (kind, namespace, name); cluster-scoped kinds use namespace ''.

The reconciler only talks to the ObjectStore protocol. KubeStore (kube.py)
backs it with the cluster API; MemoryStore backs it with a dict and is what
the test-suite and local simulations use.
"""

import copy
import logging
from typing import Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Object store failure (permission, validation, transport)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AlreadyExists(StoreError):
    """Create conflicted with an object of the same identity."""


class NotFound(StoreError):
    """Object (or its kind) does not exist."""


class Conflict(StoreError):
    """Update lost a write race (stale resourceVersion)."""


def identity(obj: dict) -> tuple[str, str, str]:
    """Return (kind, namespace, name) for an object dict."""
    metadata = obj.get('metadata') or {}
    return obj.get('kind', ''), metadata.get('namespace', '') or '', metadata.get('name', '')


def describe(obj: dict) -> str:
    """Human-readable identity for log lines (e.g. 'Role istio-system/user1-jaeger')."""
    kind, namespace, name = identity(obj)
    return f"{kind} {namespace}/{name}" if namespace else f"{kind} {name}"


def labels_match(obj: dict, labels: Optional[dict]) -> bool:
    """True if every key/value in labels is present on the object."""
    if not labels:
        return True
    obj_labels = (obj.get('metadata') or {}).get('labels') or {}
    return all(obj_labels.get(k) == v for k, v in labels.items())


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for the persistent object store.

    Every call is synchronous; timeouts belong to the implementation.
    """

    def create(self, obj: dict) -> dict:
        """Create an object. Raises AlreadyExists if the identity is taken."""

    def get(self, kind: str, namespace: str, name: str) -> dict:
        """Fetch an object. Raises NotFound."""

    def update(self, obj: dict) -> dict:
        """Replace an object. Raises NotFound or Conflict."""

    def update_status(self, obj: dict) -> dict:
        """Replace only the status of an object. Raises NotFound or Conflict."""

    def delete(self, kind: str, namespace: str, name: str) -> None:
        """Delete an object. Raises NotFound."""

    def list(self, kind: str, namespace: str = '', labels: Optional[dict] = None) -> list[dict]:
        """List objects of a kind in a namespace, filtered by labels."""


class MemoryStore:
    """In-memory ObjectStore.

    Keeps deep copies so callers cannot mutate stored state behind the
    store's back, and bumps metadata.resourceVersion on every write so
    stale updates raise Conflict like the real API does.

    Attributes:
        calls: Ordered log of (verb, kind, namespace, name) for every
            mutating call, successful or not. Tests use it to assert on
            side effects.
    """

    def __init__(self, objects: Optional[list[dict]] = None):
        self._objects: dict[tuple[str, str, str], dict] = {}
        self._version = 0
        self._failures: dict[tuple[str, str], StoreError] = {}
        self.calls: list[tuple[str, str, str, str]] = []
        for obj in objects or []:
            self.create(obj)
        self.calls.clear()

    def fail(self, verb: str, kind: str, error: StoreError) -> None:
        """Make every `verb` call on `kind` raise `error` until cleared."""
        self._failures[(verb, kind)] = error

    def clear_failures(self) -> None:
        self._failures.clear()

    def _check_failure(self, verb: str, kind: str) -> None:
        error = self._failures.get((verb, kind))
        if error is not None:
            raise error

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _record(self, verb: str, key: tuple[str, str, str]) -> None:
        self.calls.append((verb,) + key)

    def create(self, obj: dict) -> dict:
        key = identity(obj)
        self._record('create', key)
        self._check_failure('create', key[0])
        if not key[2]:
            raise StoreError(f"{key[0]} has no metadata.name", status=422)
        if key in self._objects:
            raise AlreadyExists(f"{describe(obj)} already exists", status=409)
        stored = copy.deepcopy(obj)
        stored.setdefault('metadata', {})['resourceVersion'] = self._next_version()
        self._objects[key] = stored
        logger.debug(f"Stored {describe(stored)}")
        return copy.deepcopy(stored)

    def get(self, kind: str, namespace: str, name: str) -> dict:
        self._check_failure('get', kind)
        key = (kind, namespace or '', name)
        if key not in self._objects:
            raise NotFound(f"{kind} {namespace}/{name} not found", status=404)
        return copy.deepcopy(self._objects[key])

    def _replace(self, verb: str, obj: dict, status_only: bool) -> dict:
        key = identity(obj)
        self._record(verb, key)
        self._check_failure(verb, key[0])
        current = self._objects.get(key)
        if current is None:
            raise NotFound(f"{describe(obj)} not found", status=404)
        sent_version = (obj.get('metadata') or {}).get('resourceVersion')
        if sent_version and sent_version != current['metadata'].get('resourceVersion'):
            raise Conflict(f"{describe(obj)} was modified", status=409)
        if status_only:
            stored = copy.deepcopy(current)
            stored['status'] = copy.deepcopy(obj.get('status') or {})
        else:
            stored = copy.deepcopy(obj)
            if 'status' in current:
                stored['status'] = copy.deepcopy(current['status'])
        stored.setdefault('metadata', {})['resourceVersion'] = self._next_version()
        self._objects[key] = stored
        return copy.deepcopy(stored)

    def update(self, obj: dict) -> dict:
        return self._replace('update', obj, status_only=False)

    def update_status(self, obj: dict) -> dict:
        return self._replace('update_status', obj, status_only=True)

    def delete(self, kind: str, namespace: str, name: str) -> None:
        key = (kind, namespace or '', name)
        self._record('delete', key)
        self._check_failure('delete', kind)
        if key not in self._objects:
            raise NotFound(f"{kind} {namespace}/{name} not found", status=404)
        del self._objects[key]

    def list(self, kind: str, namespace: str = '', labels: Optional[dict] = None) -> list[dict]:
        self._check_failure('list', kind)
        items = [
            copy.deepcopy(obj)
            for (k, ns, _), obj in sorted(self._objects.items())
            if k == kind and ns == (namespace or '') and labels_match(obj, labels)
        ]
        return items

    def count(self, verb: str, kind: Optional[str] = None) -> int:
        """Number of recorded calls for a verb (optionally one kind)."""
        return sum(1 for call in self.calls if call[0] == verb and (kind is None or call[1] == kind))

    def __contains__(self, key: tuple[str, str, str]) -> bool:
        return key in self._objects

    def __len__(self) -> int:
        return len(self._objects)
