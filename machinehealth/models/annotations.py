"""
Typed accessors for the label and annotation protocols shared with the
machine API. The keys are wire contracts and must not change.
"""

import copy
from typing import Optional

from .resources import Machine, NamespacedName, Node
from ..errors import InvalidAnnotationError

MACHINE_ANNOTATION_KEY = "machine.openshift.io/machine"
MACHINE_REBOOT_ANNOTATION_KEY = "healthchecking.openshift.io/machine-remediation-reboot"
NODE_MASTER_LABEL = "node-role.kubernetes.io/master"
MACHINE_ROLE_LABEL = "machine.openshift.io/cluster-api-machine-role"
MACHINE_MASTER_ROLE = "master"

MACHINE_PHASE_FAILED = "Failed"
MACHINE_SET_KIND = "MachineSet"
REMEDIATION_STRATEGY_REBOOT = "reboot"


def parse_machine_annotation(value: Optional[str]) -> NamespacedName:
    """Parse a ``<namespace>/<name>`` back-reference."""
    if not value:
        raise InvalidAnnotationError("Machine annotation is empty")
    parts = value.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidAnnotationError(
            f"Machine annotation {value!r} is not of the form <namespace>/<name>")
    return NamespacedName(namespace=parts[0], name=parts[1])


def format_machine_annotation(key: NamespacedName) -> str:
    return f"{key.namespace}/{key.name}"


def machine_key_for_node(node: Node) -> NamespacedName:
    """Resolve the owning machine of a node from its back-reference annotation."""
    value = node.annotations.get(MACHINE_ANNOTATION_KEY)
    if value is None:
        raise InvalidAnnotationError(
            f"No machine annotation for node {node.name!r}",
            {"annotation": MACHINE_ANNOTATION_KEY},
        )
    return parse_machine_annotation(value)


def is_control_plane_node(node: Optional[Node]) -> bool:
    return node is not None and NODE_MASTER_LABEL in node.labels


def is_control_plane_machine(machine: Machine) -> bool:
    return machine.labels.get(MACHINE_ROLE_LABEL) == MACHINE_MASTER_ROLE


def has_reboot_annotation(node: Node) -> bool:
    return MACHINE_REBOOT_ANNOTATION_KEY in node.annotations


def with_reboot_annotation(node: Node) -> Node:
    """Return a copy of the node carrying the reboot request."""
    updated = copy.deepcopy(node)
    updated.metadata.annotations[MACHINE_REBOOT_ANNOTATION_KEY] = ""
    return updated
