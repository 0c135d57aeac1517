from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .selector import LabelSelector
from ..utils import parse_timestamp


@dataclass(frozen=True)
class NamespacedName:
    """Identity of a namespaced (or cluster-scoped, with empty namespace) object"""
    namespace: str
    name: str

    def __str__(self) -> str:
        if not self.namespace:
            return self.name
        return f"{self.namespace}/{self.name}"


@dataclass
class OwnerReference:
    kind: str
    name: str = ""
    controller: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OwnerReference":
        return cls(
            kind=data.get("kind", ""),
            name=data.get("name", ""),
            controller=bool(data.get("controller", False)),
        )


@dataclass
class ObjectMeta:
    name: str
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    owner_references: List[OwnerReference] = field(default_factory=list)
    creation_timestamp: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ObjectMeta":
        data = data or {}
        return cls(
            name=data.get("name", ""),
            namespace=data.get("namespace") or "",
            uid=data.get("uid") or "",
            resource_version=data.get("resourceVersion") or "",
            labels=dict(data.get("labels") or {}),
            annotations=dict(data.get("annotations") or {}),
            owner_references=[OwnerReference.from_dict(o) for o in data.get("ownerReferences") or []],
            creation_timestamp=parse_timestamp(data.get("creationTimestamp")),
        )

    @property
    def key(self) -> NamespacedName:
        return NamespacedName(self.namespace, self.name)


@dataclass
class Machine:
    """Control-plane representation of a provisioned compute instance"""
    metadata: ObjectMeta
    node_ref: Optional[str] = None
    phase: Optional[str] = None
    last_updated: Optional[datetime] = None
    provider_id: Optional[str] = None
    api_version: str = "machine.openshift.io/v1beta1"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Machine":
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        node_ref = status.get("nodeRef") or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            node_ref=node_ref.get("name") or None,
            phase=status.get("phase"),
            last_updated=parse_timestamp(status.get("lastUpdated")),
            provider_id=spec.get("providerID"),
            api_version=data.get("apiVersion") or cls.api_version,
        )

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def labels(self) -> Dict[str, str]:
        return self.metadata.labels

    @property
    def key(self) -> NamespacedName:
        return self.metadata.key

    def has_owner(self, kind: str) -> bool:
        return any(ref.kind == kind for ref in self.metadata.owner_references)


@dataclass
class NodeCondition:
    type: str
    status: str
    last_transition_time: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NodeCondition":
        return cls(
            type=data.get("type", ""),
            status=data.get("status", ""),
            last_transition_time=parse_timestamp(data.get("lastTransitionTime")),
        )


@dataclass
class Node:
    """Runtime-reported representation of a machine that joined the cluster"""
    metadata: ObjectMeta
    conditions: List[NodeCondition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Node":
        status = data.get("status") or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            conditions=[NodeCondition.from_dict(c) for c in status.get("conditions") or []],
        )

    @classmethod
    def placeholder(cls, name: str) -> "Node":
        """A node known only by name: it was referenced but could not be found."""
        return cls(metadata=ObjectMeta(name=name))

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def labels(self) -> Dict[str, str]:
        return self.metadata.labels

    @property
    def annotations(self) -> Dict[str, str]:
        return self.metadata.annotations

    @property
    def is_placeholder(self) -> bool:
        return not self.metadata.uid

    def get_condition(self, condition_type: str) -> Optional[NodeCondition]:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None


@dataclass
class UnhealthyCondition:
    """Node condition that, held for longer than timeout, marks a target unhealthy"""
    type: str
    status: str
    timeout: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UnhealthyCondition":
        return cls(
            type=data.get("type", ""),
            status=data.get("status", ""),
            timeout=str(data.get("timeout", "")),
        )


@dataclass
class MachineHealthCheck:
    """Administrator-defined health policy; never mutated by the operator"""
    metadata: ObjectMeta
    selector: LabelSelector = field(default_factory=LabelSelector)
    unhealthy_conditions: List[UnhealthyCondition] = field(default_factory=list)
    remediation_strategy: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MachineHealthCheck":
        spec = data.get("spec") or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            selector=LabelSelector.from_dict(spec.get("selector")),
            unhealthy_conditions=[
                UnhealthyCondition.from_dict(c) for c in spec.get("unhealthyConditions") or []
            ],
            remediation_strategy=spec.get("remediationStrategy"),
        )

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def key(self) -> NamespacedName:
        return self.metadata.key


@dataclass
class MachineSet:
    """Scaling group that replaces deleted machines; read only for metrics"""
    metadata: ObjectMeta
    replicas: int = 0
    ready_replicas: int = 0
    available_replicas: int = 0
    api_version: str = "machine.openshift.io/v1beta1"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MachineSet":
        status = data.get("status") or {}
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            replicas=int(status.get("replicas") or 0),
            ready_replicas=int(status.get("readyReplicas") or 0),
            available_replicas=int(status.get("availableReplicas") or 0),
            api_version=data.get("apiVersion") or cls.api_version,
        )

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace
