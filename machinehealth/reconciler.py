"""
Reconcile loop for a single MachineHealthCheck.

A pass moves through Resolving -> Evaluating -> Remediating -> Scheduled.
Nothing is kept between passes: every pass recomputes targets from the store,
and every remediation is idempotent, so an abandoned pass is safe to restart.
"""

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import List, Optional, Tuple

from .clients.store import Store
from .engines import HealthEvaluator, RemediationEngine, Target, TargetResolver
from .errors import HealthCheckError, NotFoundError, ReconcileError
from .metrics import MetricsRecorder
from .models import NamespacedName
from .utils import min_duration

LOG = logging.getLogger(__name__)


class ReconcilePhase(Enum):
    RESOLVING = "Resolving"
    EVALUATING = "Evaluating"
    REMEDIATING = "Remediating"
    SCHEDULED = "Scheduled"


@dataclass
class ReconcileResult:
    """Scheduling directive for the hosting loop; zero means no requeue"""
    requeue_after: timedelta = timedelta(0)

    @property
    def requeue(self) -> bool:
        return self.requeue_after > timedelta(0)


class MachineHealthCheckReconciler:
    """Evaluates every target of a policy and remediates the unhealthy ones"""

    def __init__(self,
                 store: Store,
                 evaluator: Optional[HealthEvaluator] = None,
                 metrics: Optional[MetricsRecorder] = None,
                 abort_on_remediation_error: bool = True):
        self.store = store
        self.resolver = TargetResolver(store)
        self.evaluator = evaluator or HealthEvaluator()
        self.remediation = RemediationEngine(store)
        self.metrics = metrics
        self.abort_on_remediation_error = abort_on_remediation_error

    def reconcile(self, key: NamespacedName) -> ReconcileResult:
        LOG.info(f"Reconciling {key}")
        started = time.monotonic()
        try:
            result = self._reconcile(key)
        except HealthCheckError:
            self._record("error", started)
            raise
        self._record("requeue" if result.requeue else "success", started)
        return result

    def _reconcile(self, key: NamespacedName) -> ReconcileResult:
        try:
            mhc = self.store.health_checks.get(key)
        except NotFoundError:
            LOG.info(f"Reconciling {key}: MachineHealthCheck not found, ignoring")
            if self.metrics:
                self.metrics.forget_policy(key.namespace, key.name)
            return ReconcileResult()

        self._enter(key, ReconcilePhase.RESOLVING)
        targets = self.resolver.resolve_targets(mhc)

        self._enter(key, ReconcilePhase.EVALUATING)
        unhealthy, next_checks = self._evaluate(key, targets)
        if self.metrics:
            self.metrics.record_targets(key.namespace, key.name, len(targets), len(unhealthy))

        self._enter(key, ReconcilePhase.REMEDIATING)
        self._remediate(key, unhealthy)

        self._enter(key, ReconcilePhase.SCHEDULED)
        requeue_after = min_duration(next_checks)
        if requeue_after > timedelta(0):
            LOG.info(f"Reconciling {key}: some targets might go unhealthy, requeue in {requeue_after}")
        return ReconcileResult(requeue_after=requeue_after)

    def _evaluate(self, key: NamespacedName, targets: List[Target]) -> Tuple[List[Target], List[timedelta]]:
        unhealthy = []
        next_checks = []
        for target in targets:
            LOG.debug(f"Reconciling {target}: health checking")
            try:
                is_unhealthy, next_check = self.evaluator.is_unhealthy(target)
            except HealthCheckError as e:
                # Misconfigured conditions affect every target: abort before remediating
                LOG.error(f"Reconciling {target}: error health checking: {e}")
                e.context.setdefault("machineHealthCheck", str(key))
                raise
            if is_unhealthy:
                LOG.info(f"Reconciling {target}: meets unhealthy criteria")
                unhealthy.append(target)
            elif next_check > timedelta(0):
                next_checks.append(next_check)
        return unhealthy, next_checks

    def _remediate(self, key: NamespacedName, targets: List[Target]):
        errors = []
        for target in targets:
            try:
                action = self.remediation.remediate(target)
            except HealthCheckError as e:
                LOG.error(f"Reconciling {target}: error remediating: {e}")
                if self.abort_on_remediation_error:
                    raise
                errors.append(e)
                continue
            if self.metrics:
                self.metrics.record_remediation(key.namespace, action.value)
        if errors:
            raise ReconcileError(
                f"Reconciling {key}: {len(errors)} of {len(targets)} remediations failed", errors)

    def _enter(self, key: NamespacedName, phase: ReconcilePhase):
        LOG.debug(f"Reconciling {key}: {phase.value}")

    def _record(self, result: str, started: float):
        if self.metrics:
            self.metrics.record_reconcile(result, time.monotonic() - started)
