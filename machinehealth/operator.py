"""
Main MachineHealthCheck operator implementation.

Glues the synchronous reconciliation core to kopf's asyncio loop: store calls
and decisions run in worker threads, wake-ups and backoff live here.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

import kubernetes

from .clients.store import KubernetesStore, Store
from .config import OperatorSettings, Resources, get_settings
from .engines import EventRouter, HealthEvaluator
from .errors import ConflictError, HealthCheckError, ReconcileError
from .health import set_component_health
from .metrics import MachineCollector, MetricsRecorder, start_metrics_server
from .models import Machine, NamespacedName, Node
from .reconciler import MachineHealthCheckReconciler
from .workqueue import Backoff, TriggerRegistry

LOG = logging.getLogger(__name__)

# ============================================================================
# Main Operator
# ============================================================================

class MachineHealthCheckOperator:
    """Main operator class"""

    def __init__(self, settings: Optional[OperatorSettings] = None):
        self.settings = settings or get_settings()
        self.k8s_client = None
        self.store: Optional[Store] = None
        self.metrics: Optional[MetricsRecorder] = None
        self.reconciler: Optional[MachineHealthCheckReconciler] = None
        self.router: Optional[EventRouter] = None
        self.triggers = TriggerRegistry()
        self.backoff = Backoff(
            base=self.settings.error_backoff_base_seconds,
            maximum=self.settings.error_backoff_max_seconds
        )

    async def initialize(self):
        """Initialize operator"""
        try:
            self._load_kube_config()
            self.k8s_client = kubernetes.client.ApiClient()
            set_component_health("kubernetes", True)
            LOG.info("Kubernetes client ready")
        except kubernetes.config.ConfigException as e:
            LOG.error(f"K8s init failed: {e}")
            set_component_health("kubernetes", False)
            raise

        self.setup(KubernetesStore(self.k8s_client), MetricsRecorder())

        try:
            start_metrics_server(self.metrics, self.settings.metrics_port)
            set_component_health("metrics", True)
        except OSError as e:
            LOG.warning(f"Metrics server failed to start: {e}")
            set_component_health("metrics", False)

    def setup(self, store: Store, metrics: Optional[MetricsRecorder] = None):
        """Wire the reconciliation core onto a store."""
        self.store = store
        self.metrics = metrics
        self.reconciler = MachineHealthCheckReconciler(
            store,
            evaluator=HealthEvaluator(node_startup_timeout=self.settings.node_startup_timeout),
            metrics=metrics,
            abort_on_remediation_error=self.settings.abort_on_remediation_error
        )
        self.router = EventRouter(store)
        if metrics is not None:
            namespace = self.settings.watch_namespace or Resources.MACHINE_API_NAMESPACE
            metrics.registry.register(MachineCollector(store, namespace, metrics))
        set_component_health("reconciler", True)

    def _load_kube_config(self):
        if self.settings.kubeconfig_path:
            kubernetes.config.load_kube_config(config_file=self.settings.kubeconfig_path)
            LOG.info(f"Loaded Kubernetes config from {self.settings.kubeconfig_path}")
            return
        try:
            kubernetes.config.load_incluster_config()
            LOG.info("Loaded in-cluster Kubernetes config")
        except kubernetes.config.ConfigException:
            kubernetes.config.load_kube_config()
            LOG.info("Loaded local Kubernetes config")

    # ------------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------------

    async def run_reconcile_loop(self, key: NamespacedName, stopped):
        """
        Body of the per-policy daemon: reconcile, then sleep until the next
        trigger, requeue deadline or backoff expiry.
        """
        self.triggers.register(key)
        LOG.info(f"Reconcile loop started for {key}")
        try:
            while not stopped:
                delay = await self.reconcile_once(key)
                woken = await self.triggers.wait(key, timeout=delay, stopped=stopped)
                if stopped:
                    break
                LOG.debug(f"Reconcile loop for {key} woken by {'trigger' if woken else 'timer'}")
        finally:
            self.triggers.unregister(key)
            self.backoff.reset(key)
            LOG.info(f"Reconcile loop stopped for {key}")

    async def reconcile_once(self, key: NamespacedName) -> Optional[float]:
        """Run one pass and return how long to wait before the next one (None: until triggered)."""
        try:
            result = await asyncio.to_thread(self.reconciler.reconcile, key)
        except (ConflictError, ReconcileError) as e:
            if isinstance(e, ReconcileError) and not e.transient:
                return self._fail(key, e)
            LOG.info(f"Reconciling {key}: conflict, retrying: {e}")
            return self.backoff.base
        except HealthCheckError as e:
            return self._fail(key, e)

        self.backoff.reset(key)
        set_component_health("reconciler", True)
        if result.requeue:
            return result.requeue_after.total_seconds()
        return self.settings.resync_interval

    def _fail(self, key: NamespacedName, error: HealthCheckError) -> float:
        delay = self.backoff.next_delay(key)
        LOG.error(f"Reconciling {key} failed, retrying in {delay:.0f}s: {error}")
        set_component_health("reconciler", False)
        return delay

    # ------------------------------------------------------------------------
    # Event routing
    # ------------------------------------------------------------------------

    def trigger(self, key: NamespacedName) -> bool:
        return self.triggers.trigger(key)

    async def route_machine(self, body: Mapping[str, Any]) -> int:
        """Wake the policies selecting a changed machine."""
        machine = Machine.from_dict(body)
        try:
            keys = await asyncio.to_thread(self.router.requests_for_machine, machine)
        except HealthCheckError as e:
            LOG.warning(f"Failed to route machine {machine.key}: {e}")
            return 0
        return self.triggers.trigger_all(keys)

    async def route_node(self, body: Mapping[str, Any]) -> int:
        """Wake the policies selecting the machine behind a changed node."""
        node = Node.from_dict(body)
        try:
            keys = await asyncio.to_thread(self.router.requests_for_node, node)
        except HealthCheckError as e:
            LOG.warning(f"Failed to route node {node.name}: {e}")
            return 0
        return self.triggers.trigger_all(keys)

    def cleanup(self):
        """Cleanup resources"""
        if self.k8s_client:
            self.k8s_client.close()
            self.k8s_client = None
            LOG.info("Kubernetes clients cleaned up")
        self.store = None
        self.reconciler = None
        self.router = None
