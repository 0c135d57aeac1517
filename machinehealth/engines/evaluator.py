"""
Health evaluation for a single target.

Precedence, first match wins:

1. machine phase is ``Failed``                       -> unhealthy
2. no node yet: status never updated                  -> healthy, recheck after the grace period
   no node yet: grace period exceeded                 -> unhealthy
   no node yet: within grace period                   -> healthy, recheck when it expires
3. node referenced but not found                      -> unhealthy
4. an unhealthy condition held for at least timeout   -> unhealthy
5. otherwise healthy, recheck at the earliest pending timeout (zero if none)
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Tuple

from .targets import Target
from ..models import UnhealthyCondition
from ..models.annotations import MACHINE_PHASE_FAILED
from ..utils import min_duration, parse_duration, utcnow

LOG = logging.getLogger(__name__)

# Grace period for a new machine to acquire a node
DEFAULT_NODE_STARTUP_TIMEOUT = timedelta(minutes=10)

_ZERO = timedelta(0)


class HealthEvaluator:
    """Decides whether a target is unhealthy and when it must be looked at again"""

    def __init__(self,
                 node_startup_timeout: timedelta = DEFAULT_NODE_STARTUP_TIMEOUT,
                 clock: Callable[[], datetime] = utcnow):
        self.node_startup_timeout = node_startup_timeout
        self.clock = clock

    def is_unhealthy(self, target: Target) -> Tuple[bool, timedelta]:
        """
        Evaluate a target.

        Returns:
            (unhealthy, recheck_after). recheck_after is zero when unhealthy or
            when nothing needs to be looked at again.

        Raises:
            InvalidTimeoutError: an unhealthy condition timeout does not parse
        """
        now = self.clock()
        machine = target.machine

        if machine.phase == MACHINE_PHASE_FAILED:
            LOG.debug(f"{target}: machine phase is {MACHINE_PHASE_FAILED}")
            return True, _ZERO

        if target.node is None:
            if machine.last_updated is None:
                return False, self.node_startup_timeout
            elapsed = now - machine.last_updated
            if elapsed > self.node_startup_timeout:
                LOG.debug(f"{target}: no node after {elapsed}")
                return True, _ZERO
            return False, self._clamp(self.node_startup_timeout - elapsed)

        if target.node.is_placeholder:
            LOG.debug(f"{target}: node does not exist")
            return True, _ZERO

        timeouts = self._parse_timeouts(target.mhc.unhealthy_conditions)
        next_checks: List[timedelta] = []
        for rule, timeout in timeouts:
            condition = target.node.get_condition(rule.type)
            if condition is None or condition.status != rule.status:
                continue
            # Unknown transition time counts as "just transitioned"
            transitioned = condition.last_transition_time or now
            elapsed = now - transitioned
            if elapsed >= timeout:
                LOG.debug(f"{target}: condition {rule.type}={rule.status} held for {elapsed}, timeout {timeout}")
                return True, _ZERO
            next_checks.append(timeout - elapsed)

        return False, self._clamp(min_duration(next_checks))

    @staticmethod
    def _parse_timeouts(rules: List[UnhealthyCondition]) -> List[Tuple[UnhealthyCondition, timedelta]]:
        # Every rule is parsed up front: one bad timeout is a policy-wide defect
        return [(rule, parse_duration(rule.timeout)) for rule in rules]

    @staticmethod
    def _clamp(delay: timedelta) -> timedelta:
        if delay < _ZERO:
            LOG.warning(f"Negative recheck delay {delay} clamped to zero")
            return _ZERO
        return delay
