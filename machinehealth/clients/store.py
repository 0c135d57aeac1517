"""
Typed repositories over the cluster store.

The reconciliation core only talks to these interfaces. ``KubernetesStore``
implements them on top of the official kubernetes client; tests use an
in-memory implementation.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import kubernetes
import urllib3
from kubernetes.client.rest import ApiException

from ..config import Resources
from ..errors import ConflictError, NotFoundError, StoreError
from ..models import LabelSelector, Machine, MachineHealthCheck, MachineSet, NamespacedName, Node

LOG = logging.getLogger(__name__)

# ============================================================================
# Repository Interfaces
# ============================================================================

class MachineRepository(ABC):

    @abstractmethod
    def get(self, key: NamespacedName) -> Machine:
        """Return the machine or raise NotFoundError."""

    @abstractmethod
    def list(self, namespace: str, selector: Optional[LabelSelector] = None) -> List[Machine]:
        """List machines in a namespace, optionally filtered by a selector."""

    @abstractmethod
    def delete(self, machine: Machine) -> None:
        """Delete the machine; NotFoundError if it is already gone."""


class NodeRepository(ABC):

    @abstractmethod
    def get(self, name: str) -> Node:
        """Return the node or raise NotFoundError."""

    @abstractmethod
    def list(self, selector: Optional[LabelSelector] = None) -> List[Node]:
        """List nodes, optionally filtered by a selector."""

    @abstractmethod
    def update(self, node: Node) -> Node:
        """Write labels and annotations back; ConflictError on a stale version."""


class MachineHealthCheckRepository(ABC):

    @abstractmethod
    def get(self, key: NamespacedName) -> MachineHealthCheck:
        """Return the policy or raise NotFoundError."""

    @abstractmethod
    def list(self, namespace: str) -> List[MachineHealthCheck]:
        """List policies in a namespace."""


class MachineSetRepository(ABC):

    @abstractmethod
    def list(self, namespace: str) -> List[MachineSet]:
        """List machine sets in a namespace."""


@dataclass
class Store:
    """Bundle of typed repositories handed to the engines"""
    machines: MachineRepository
    nodes: NodeRepository
    health_checks: MachineHealthCheckRepository
    machine_sets: Optional[MachineSetRepository] = None

# ============================================================================
# Kubernetes Implementation
# ============================================================================

@contextmanager
def translate_api_errors(operation: str, kind: str, name: Any):
    """Map kubernetes API and transport failures onto the store error taxonomy."""
    try:
        yield
    except ApiException as e:
        context = {"operation": operation, "kind": kind, "name": str(name), "status": e.status}
        if e.status == 404:
            raise NotFoundError(f"{kind} {name} not found", context) from e
        if e.status == 409:
            raise ConflictError(f"Conflict on {kind} {name}: {e.reason}", context) from e
        raise StoreError(f"Failed to {operation} {kind} {name}: {e.reason}", context) from e
    except (urllib3.exceptions.HTTPError, OSError) as e:
        context = {"operation": operation, "kind": kind, "name": str(name)}
        raise StoreError(f"Failed to {operation} {kind} {name}: {e}", context) from e


def _list_kwargs(selector: Optional[LabelSelector]) -> Dict[str, Any]:
    if selector is None or selector.is_empty():
        return {}
    return {"label_selector": selector.to_selector_string()}


class KubernetesMachineRepository(MachineRepository):

    def __init__(self, custom_api: kubernetes.client.CustomObjectsApi):
        self.custom_api = custom_api

    def get(self, key: NamespacedName) -> Machine:
        with translate_api_errors("get", "Machine", key):
            obj = self.custom_api.get_namespaced_custom_object(
                group=Resources.MACHINE_GROUP,
                version=Resources.MACHINE_VERSION,
                namespace=key.namespace,
                plural=Resources.MACHINE_PLURAL,
                name=key.name
            )
        return Machine.from_dict(obj)

    def list(self, namespace: str, selector: Optional[LabelSelector] = None) -> List[Machine]:
        with translate_api_errors("list", "Machine", namespace):
            result = self.custom_api.list_namespaced_custom_object(
                group=Resources.MACHINE_GROUP,
                version=Resources.MACHINE_VERSION,
                namespace=namespace,
                plural=Resources.MACHINE_PLURAL,
                **_list_kwargs(selector)
            )
        return [Machine.from_dict(item) for item in result.get("items", [])]

    def delete(self, machine: Machine) -> None:
        body = None
        if machine.metadata.uid:
            # A recreated machine with the same name must not be deleted
            body = kubernetes.client.V1DeleteOptions(
                preconditions=kubernetes.client.V1Preconditions(uid=machine.metadata.uid))
        with translate_api_errors("delete", "Machine", machine.key):
            self.custom_api.delete_namespaced_custom_object(
                group=Resources.MACHINE_GROUP,
                version=Resources.MACHINE_VERSION,
                namespace=machine.namespace,
                plural=Resources.MACHINE_PLURAL,
                name=machine.name,
                body=body
            )


class KubernetesNodeRepository(NodeRepository):

    def __init__(self, core_api: kubernetes.client.CoreV1Api, api_client: kubernetes.client.ApiClient):
        self.core_api = core_api
        self.api_client = api_client

    def _to_node(self, obj) -> Node:
        return Node.from_dict(self.api_client.sanitize_for_serialization(obj))

    def get(self, name: str) -> Node:
        with translate_api_errors("get", "Node", name):
            obj = self.core_api.read_node(name=name)
        return self._to_node(obj)

    def list(self, selector: Optional[LabelSelector] = None) -> List[Node]:
        with translate_api_errors("list", "Node", "*"):
            result = self.core_api.list_node(**_list_kwargs(selector))
        return [self._to_node(item) for item in result.items]

    def update(self, node: Node) -> Node:
        metadata: Dict[str, Any] = {
            "labels": dict(node.labels),
            "annotations": dict(node.annotations),
        }
        if node.metadata.resource_version:
            metadata["resourceVersion"] = node.metadata.resource_version
        with translate_api_errors("update", "Node", node.name):
            obj = self.core_api.patch_node(name=node.name, body={"metadata": metadata})
        return self._to_node(obj)


class KubernetesMachineHealthCheckRepository(MachineHealthCheckRepository):

    def __init__(self, custom_api: kubernetes.client.CustomObjectsApi):
        self.custom_api = custom_api

    def get(self, key: NamespacedName) -> MachineHealthCheck:
        with translate_api_errors("get", "MachineHealthCheck", key):
            obj = self.custom_api.get_namespaced_custom_object(
                group=Resources.HEALTHCHECK_GROUP,
                version=Resources.HEALTHCHECK_VERSION,
                namespace=key.namespace,
                plural=Resources.HEALTHCHECK_PLURAL,
                name=key.name
            )
        return MachineHealthCheck.from_dict(obj)

    def list(self, namespace: str) -> List[MachineHealthCheck]:
        with translate_api_errors("list", "MachineHealthCheck", namespace):
            result = self.custom_api.list_namespaced_custom_object(
                group=Resources.HEALTHCHECK_GROUP,
                version=Resources.HEALTHCHECK_VERSION,
                namespace=namespace,
                plural=Resources.HEALTHCHECK_PLURAL
            )
        return [MachineHealthCheck.from_dict(item) for item in result.get("items", [])]


class KubernetesMachineSetRepository(MachineSetRepository):

    def __init__(self, custom_api: kubernetes.client.CustomObjectsApi):
        self.custom_api = custom_api

    def list(self, namespace: str) -> List[MachineSet]:
        with translate_api_errors("list", "MachineSet", namespace):
            result = self.custom_api.list_namespaced_custom_object(
                group=Resources.MACHINE_GROUP,
                version=Resources.MACHINE_VERSION,
                namespace=namespace,
                plural=Resources.MACHINESET_PLURAL
            )
        return [MachineSet.from_dict(item) for item in result.get("items", [])]


class KubernetesStore(Store):
    """Store backed by a live cluster"""

    def __init__(self, api_client: kubernetes.client.ApiClient):
        custom_api = kubernetes.client.CustomObjectsApi(api_client)
        core_api = kubernetes.client.CoreV1Api(api_client)
        super().__init__(
            machines=KubernetesMachineRepository(custom_api),
            nodes=KubernetesNodeRepository(core_api, api_client),
            health_checks=KubernetesMachineHealthCheckRepository(custom_api),
            machine_sets=KubernetesMachineSetRepository(custom_api),
        )
        self.api_client = api_client
        LOG.info("Kubernetes store initialized")
