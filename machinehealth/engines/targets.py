"""
Target resolution: which machine/node pairs a MachineHealthCheck governs.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..clients.store import Store
from ..errors import NotFoundError
from ..models import Machine, MachineHealthCheck, Node

LOG = logging.getLogger(__name__)


@dataclass
class Target:
    """
    A policy, one machine it selects, and that machine's node.

    Built fresh on every reconciliation and never cached. ``node`` is None
    while the machine has no node reference; a referenced node that could not
    be found is represented by ``Node.placeholder``.
    """
    mhc: MachineHealthCheck
    machine: Machine
    node: Optional[Node] = None

    def __str__(self) -> str:
        node_name = self.node.name if self.node is not None else ""
        return f"{self.mhc.namespace}/{self.mhc.name}/{self.machine.name}/{node_name}"


class TargetResolver:
    """Builds the target list of a policy from the store"""

    def __init__(self, store: Store):
        self.store = store

    def resolve_targets(self, mhc: MachineHealthCheck) -> List[Target]:
        machines = self.get_machines(mhc)
        targets = []
        for machine in machines:
            targets.append(Target(mhc=mhc, machine=machine, node=self.get_node(machine)))
        LOG.debug(f"Resolved {len(targets)} targets for {mhc.key}")
        return targets

    def get_machines(self, mhc: MachineHealthCheck) -> List[Machine]:
        """List the machines selected by the policy, in listing order."""
        # Validates the selector before anything touches the store
        mhc.selector.requirements()
        if mhc.selector.is_empty():
            LOG.warning(f"{mhc.key}: empty selector matches no machines")
            return []
        machines = self.store.machines.list(mhc.namespace, mhc.selector)
        # The store may ignore the selector; filter locally as well
        return [m for m in machines if mhc.selector.matches(m.labels)]

    def get_node(self, machine: Machine) -> Optional[Node]:
        """
        Resolve the node a machine points at.

        A missing node reference yields None. A dangling reference yields a
        placeholder node; any other store failure propagates.
        """
        if not machine.node_ref:
            return None
        try:
            return self.store.nodes.get(machine.node_ref)
        except NotFoundError:
            LOG.info(f"Node {machine.node_ref} referenced by machine {machine.key} not found")
            return Node.placeholder(machine.node_ref)

