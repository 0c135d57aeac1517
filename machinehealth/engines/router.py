"""
Maps Machine and Node changes to the MachineHealthChecks that select them.
"""

import logging
from typing import List

from ..clients.store import Store
from ..errors import InvalidAnnotationError, InvalidSelectorError, NotFoundError
from ..models import Machine, NamespacedName, Node
from ..models.annotations import machine_key_for_node

LOG = logging.getLogger(__name__)


class EventRouter:
    """
    Reverse index from machines and nodes to policy keys.

    Policies are re-listed per event; policy counts are small and namespaced.
    Order of the returned keys is not significant and duplicates are harmless.
    """

    def __init__(self, store: Store):
        self.store = store

    def requests_for_machine(self, machine: Machine) -> List[NamespacedName]:
        requests = []
        for mhc in self.store.health_checks.list(machine.namespace):
            try:
                if mhc.selector.matches(machine.labels):
                    requests.append(mhc.key)
            except InvalidSelectorError as e:
                LOG.warning(f"Skipping {mhc.key} for machine {machine.key}: {e}")
        return requests

    def requests_for_node(self, node: Node) -> List[NamespacedName]:
        try:
            machine_key = machine_key_for_node(node)
        except InvalidAnnotationError as e:
            LOG.debug(f"Node {node.name} is not actionable: {e}")
            return []
        try:
            machine = self.store.machines.get(machine_key)
        except NotFoundError:
            LOG.debug(f"Node {node.name} references missing machine {machine_key}")
            return []
        return self.requests_for_machine(machine)
