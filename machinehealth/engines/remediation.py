"""
Remediation of unhealthy targets.

Control-plane machines are never deleted: they get a reboot request on their
node instead. Worker machines owned by a MachineSet are deleted and the
MachineSet provisions the replacement. Each call performs at most one store
mutation.
"""

import logging
from enum import Enum

from .targets import Target
from ..clients.store import Store
from ..errors import ConflictError, NotFoundError, RemediationError, StoreError
from ..models.annotations import (
    MACHINE_SET_KIND,
    REMEDIATION_STRATEGY_REBOOT,
    has_reboot_annotation,
    is_control_plane_machine,
    is_control_plane_node,
    with_reboot_annotation,
)

LOG = logging.getLogger(__name__)


class RemediationAction(Enum):
    """Outcome of a remediation decision"""
    SKIP = "skip"
    REBOOT = "reboot"
    DELETE = "delete"


def is_control_plane(target: Target) -> bool:
    return is_control_plane_node(target.node) or is_control_plane_machine(target.machine)


class RemediationEngine:
    """Applies the remediation decision for an unhealthy target"""

    def __init__(self, store: Store):
        self.store = store

    def decide(self, target: Target) -> RemediationAction:
        """Pick the remediation for a target without touching the store."""
        if self._wants_reboot(target):
            if target.node is None or target.node.is_placeholder:
                return RemediationAction.SKIP
            return RemediationAction.REBOOT
        if not target.machine.has_owner(MACHINE_SET_KIND):
            return RemediationAction.SKIP
        return RemediationAction.DELETE

    def remediate(self, target: Target) -> RemediationAction:
        """
        Remediate an unhealthy target.

        Raises:
            ConflictError: the store rejected a stale write; retry the pass
            RemediationError: any other store failure
        """
        LOG.info(f"{target}: start remediation logic")
        action = self.decide(target)

        if action is RemediationAction.REBOOT:
            self._request_reboot(target)
        elif action is RemediationAction.DELETE:
            self._delete_machine(target)
        elif self._wants_reboot(target):
            reason = "control plane machine" if is_control_plane(target) else "reboot strategy"
            LOG.warning(f"{target}: {reason} has no node to annotate, cannot request reboot")
        else:
            LOG.info(f"{target}: no {MACHINE_SET_KIND} controller owner, skipping remediation")
        return action

    @staticmethod
    def _wants_reboot(target: Target) -> bool:
        return is_control_plane(target) or target.mhc.remediation_strategy == REMEDIATION_STRATEGY_REBOOT

    def _request_reboot(self, target: Target):
        node = target.node
        if has_reboot_annotation(node):
            LOG.info(f"{target}: reboot already requested")
            return
        LOG.info(f"{target}: requesting reboot of node {node.name}")
        try:
            target.node = self.store.nodes.update(with_reboot_annotation(node))
        except NotFoundError:
            LOG.info(f"{target}: node {node.name} disappeared before reboot request")
        except ConflictError:
            raise
        except StoreError as e:
            raise RemediationError(
                f"{target}: failed to request reboot: {e}", {"node": node.name}) from e

    def _delete_machine(self, target: Target):
        LOG.info(f"{target}: deleting")
        try:
            self.store.machines.delete(target.machine)
        except NotFoundError:
            LOG.info(f"{target}: machine already deleted")
        except ConflictError:
            raise
        except StoreError as e:
            raise RemediationError(
                f"{target}: failed to delete machine: {e}", {"machine": str(target.machine.key)}) from e
