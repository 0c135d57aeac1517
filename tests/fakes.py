"""
In-memory store used by the tests.

Objects are deep-copied on the way in and out so tests observe only what was
written through the repository interfaces.
"""

import copy
from typing import Dict, List, Optional

from machinehealth.clients.store import (
    MachineHealthCheckRepository,
    MachineRepository,
    MachineSetRepository,
    NodeRepository,
    Store,
)
from machinehealth.errors import ConflictError, NotFoundError, StoreError
from machinehealth.models import (
    LabelSelector,
    Machine,
    MachineHealthCheck,
    MachineSet,
    NamespacedName,
    Node,
    NodeCondition,
    ObjectMeta,
    OwnerReference,
    UnhealthyCondition,
)
from machinehealth.models.annotations import MACHINE_ANNOTATION_KEY, MACHINE_SET_KIND


class FakeMachineRepository(MachineRepository):

    def __init__(self):
        self.objects: Dict[NamespacedName, Machine] = {}
        self.deleted: List[NamespacedName] = []
        self.list_error: Optional[StoreError] = None
        self.delete_error: Optional[StoreError] = None

    def add(self, machine: Machine):
        self.objects[machine.key] = copy.deepcopy(machine)

    def get(self, key: NamespacedName) -> Machine:
        if key not in self.objects:
            raise NotFoundError(f"Machine {key} not found")
        return copy.deepcopy(self.objects[key])

    def list(self, namespace: str, selector: Optional[LabelSelector] = None) -> List[Machine]:
        if self.list_error:
            raise self.list_error
        return [copy.deepcopy(m) for m in self.objects.values() if m.namespace == namespace]

    def delete(self, machine: Machine) -> None:
        if self.delete_error:
            raise self.delete_error
        if machine.key not in self.objects:
            raise NotFoundError(f"Machine {machine.key} not found")
        del self.objects[machine.key]
        self.deleted.append(machine.key)


class FakeNodeRepository(NodeRepository):

    def __init__(self):
        self.objects: Dict[str, Node] = {}
        self.updates: List[Node] = []
        self.get_error: Optional[StoreError] = None
        self.update_error: Optional[StoreError] = None

    def add(self, node: Node):
        self.objects[node.name] = copy.deepcopy(node)

    def get(self, name: str) -> Node:
        if self.get_error:
            raise self.get_error
        if name not in self.objects:
            raise NotFoundError(f"Node {name} not found")
        return copy.deepcopy(self.objects[name])

    def list(self, selector: Optional[LabelSelector] = None) -> List[Node]:
        return [copy.deepcopy(n) for n in self.objects.values()]

    def update(self, node: Node) -> Node:
        if self.update_error:
            raise self.update_error
        current = self.objects.get(node.name)
        if current is None:
            raise NotFoundError(f"Node {node.name} not found")
        if node.metadata.resource_version and node.metadata.resource_version != current.metadata.resource_version:
            raise ConflictError(f"Node {node.name} has been modified")
        stored = copy.deepcopy(node)
        stored.metadata.resource_version = str(int(current.metadata.resource_version or "0") + 1)
        self.objects[node.name] = stored
        self.updates.append(copy.deepcopy(stored))
        return copy.deepcopy(stored)


class FakeMachineHealthCheckRepository(MachineHealthCheckRepository):

    def __init__(self):
        self.objects: Dict[NamespacedName, MachineHealthCheck] = {}

    def add(self, mhc: MachineHealthCheck):
        self.objects[mhc.key] = copy.deepcopy(mhc)

    def get(self, key: NamespacedName) -> MachineHealthCheck:
        if key not in self.objects:
            raise NotFoundError(f"MachineHealthCheck {key} not found")
        return copy.deepcopy(self.objects[key])

    def list(self, namespace: str) -> List[MachineHealthCheck]:
        return [copy.deepcopy(m) for m in self.objects.values() if m.namespace == namespace]


class FakeMachineSetRepository(MachineSetRepository):

    def __init__(self):
        self.objects: List[MachineSet] = []
        self.list_error: Optional[StoreError] = None

    def list(self, namespace: str) -> List[MachineSet]:
        if self.list_error:
            raise self.list_error
        return [copy.deepcopy(m) for m in self.objects if m.namespace == namespace]


class FakeStore(Store):

    def __init__(self, machines=(), nodes=(), health_checks=()):
        super().__init__(
            machines=FakeMachineRepository(),
            nodes=FakeNodeRepository(),
            health_checks=FakeMachineHealthCheckRepository(),
            machine_sets=FakeMachineSetRepository(),
        )
        for machine in machines:
            self.machines.add(machine)
        for node in nodes:
            self.nodes.add(node)
        for mhc in health_checks:
            self.health_checks.add(mhc)

# ============================================================================
# Object builders
# ============================================================================

NAMESPACE = "openshift-machine-api"


def new_machine(name="machine", node_name=None, labels=None, owned=True, phase=None,
                last_updated=None, namespace=NAMESPACE) -> Machine:
    owners = [OwnerReference(kind=MACHINE_SET_KIND, name="machineset", controller=True)] if owned else []
    return Machine(
        metadata=ObjectMeta(
            name=name,
            namespace=namespace,
            uid=f"uid-{name}",
            labels={"foo": "bar"} if labels is None else dict(labels),
            owner_references=owners,
        ),
        node_ref=node_name,
        phase=phase,
        last_updated=last_updated,
    )


def new_node(name="node", machine=None, conditions=None, labels=None, annotations=None) -> Node:
    node_annotations = dict(annotations or {})
    if machine is not None:
        node_annotations[MACHINE_ANNOTATION_KEY] = f"{machine.namespace}/{machine.name}"
    return Node(
        metadata=ObjectMeta(
            name=name,
            uid=f"uid-{name}",
            resource_version="1",
            labels=dict(labels or {}),
            annotations=node_annotations,
        ),
        conditions=list(conditions or []),
    )


def ready_condition(status, transitioned) -> NodeCondition:
    return NodeCondition(type="Ready", status=status, last_transition_time=transitioned)


def new_mhc(name="mhc", labels=None, conditions=None, strategy=None, namespace=NAMESPACE) -> MachineHealthCheck:
    if conditions is None:
        conditions = [
            UnhealthyCondition(type="Ready", status="False", timeout="300s"),
            UnhealthyCondition(type="Ready", status="Unknown", timeout="300s"),
        ]
    return MachineHealthCheck(
        metadata=ObjectMeta(name=name, namespace=namespace, uid=f"uid-{name}"),
        selector=LabelSelector(match_labels={"foo": "bar"} if labels is None else dict(labels)),
        unhealthy_conditions=conditions,
        remediation_strategy=strategy,
    )
