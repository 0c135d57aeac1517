"""
Typed models for the resources the operator reads and writes.
"""

from .resources import (
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
from .selector import LabelSelector, LabelSelectorRequirement, Operator, Requirement

__all__ = [
    "LabelSelector",
    "LabelSelectorRequirement",
    "Machine",
    "MachineHealthCheck",
    "MachineSet",
    "NamespacedName",
    "Node",
    "NodeCondition",
    "ObjectMeta",
    "Operator",
    "OwnerReference",
    "Requirement",
    "UnhealthyCondition",
]
