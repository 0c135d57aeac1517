"""
Prometheus metrics for the MachineHealthCheck operator.

Everything hangs off an explicit ``CollectorRegistry`` owned by a
``MetricsRecorder`` instance: it is built once at startup, injected into the
reconciler, and scraped continuously afterwards.
"""

import logging
from typing import Iterable, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from .clients.store import Store
from .errors import StoreError

LOG = logging.getLogger(__name__)

# ============================================================================
# Reconciliation Metrics
# ============================================================================

class MetricsRecorder:
    """Counters and gauges updated by the reconciliation core"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.reconciles = Counter(
            'mhc_reconcile_total',
            'Total MachineHealthCheck reconciliations',
            ['result'],
            registry=self.registry
        )
        self.reconcile_duration = Histogram(
            'mhc_reconcile_duration_seconds',
            'Duration of MachineHealthCheck reconciliations',
            registry=self.registry
        )
        self.remediations = Counter(
            'mhc_remediation_total',
            'Remediation decisions taken for unhealthy targets',
            ['namespace', 'action'],
            registry=self.registry
        )
        self.targets = Gauge(
            'mhc_targets',
            'Machines currently selected by a MachineHealthCheck',
            ['namespace', 'name'],
            registry=self.registry
        )
        self.unhealthy_targets = Gauge(
            'mhc_unhealthy_targets',
            'Machines judged unhealthy in the last reconciliation',
            ['namespace', 'name'],
            registry=self.registry
        )
        self.scrape_failures = Counter(
            'mapi_scrape_failure_total',
            'Total count of scrape failures.',
            ['kind'],
            registry=self.registry
        )

    def record_reconcile(self, result: str, duration: float):
        self.reconciles.labels(result=result).inc()
        self.reconcile_duration.observe(duration)

    def record_targets(self, namespace: str, name: str, total: int, unhealthy: int):
        self.targets.labels(namespace=namespace, name=name).set(total)
        self.unhealthy_targets.labels(namespace=namespace, name=name).set(unhealthy)

    def forget_policy(self, namespace: str, name: str):
        """Drop per-policy series once the policy is gone."""
        for gauge in (self.targets, self.unhealthy_targets):
            try:
                gauge.remove(namespace, name)
            except KeyError:
                pass

    def record_remediation(self, namespace: str, action: str):
        self.remediations.labels(namespace=namespace, action=action).inc()

# ============================================================================
# Machine Inventory Collector
# ============================================================================

class MachineCollector(Collector):
    """
    Exposes the machine and machine set inventory of one namespace.

    Values are computed at scrape time from the store, so nothing here is
    cached between scrapes. A failed listing is counted and the family is
    skipped for that scrape.
    """

    def __init__(self, store: Store, namespace: str, recorder: MetricsRecorder):
        self.store = store
        self.namespace = namespace
        self.recorder = recorder

    def describe(self) -> Iterable[GaugeMetricFamily]:
        return [
            GaugeMetricFamily('mapi_machine_items_count', 'Count of machine objects currently at the apiserver'),
            GaugeMetricFamily('mapi_machineset_items_count', 'Count of machinesets at the apiserver'),
        ]

    def collect(self) -> Iterable[GaugeMetricFamily]:
        yield from self._collect_machine_metrics()
        yield from self._collect_machine_set_metrics()

    def _collect_machine_metrics(self):
        try:
            machines = self.store.machines.list(self.namespace)
        except StoreError as e:
            LOG.warning(f"Failed to list machines for metrics: {e}")
            self.recorder.scrape_failures.labels(kind='Machine-count').inc()
            return

        created = GaugeMetricFamily(
            'mapi_machine_created',
            'Timestamp of the mapi managed Machine creation time',
            labels=['name', 'namespace', 'spec_provider_id', 'node', 'api_version']
        )
        for machine in machines:
            timestamp = machine.metadata.creation_timestamp
            created.add_metric(
                [machine.name, machine.namespace, machine.provider_id or "",
                 machine.node_ref or "", machine.api_version],
                timestamp.timestamp() if timestamp else 0.0
            )
        yield created
        yield GaugeMetricFamily(
            'mapi_machine_items_count',
            'Count of machine objects currently at the apiserver',
            value=len(machines)
        )

    def _collect_machine_set_metrics(self):
        if self.store.machine_sets is None:
            return
        try:
            machine_sets = self.store.machine_sets.list(self.namespace)
        except StoreError as e:
            LOG.warning(f"Failed to list machine sets for metrics: {e}")
            self.recorder.scrape_failures.labels(kind='Machineset-count').inc()
            return

        yield GaugeMetricFamily(
            'mapi_machineset_items_count',
            'Count of machinesets at the apiserver',
            value=len(machine_sets)
        )

        created = GaugeMetricFamily(
            'mapi_machineset_created',
            'Timestamp of the mapi managed Machineset creation time',
            labels=['name', 'namespace', 'api_version']
        )
        available = GaugeMetricFamily(
            'mapi_machine_set_status_available_replicas',
            "Information of the mapi managed Machineset's status for available replicas",
            labels=['name', 'namespace']
        )
        ready = GaugeMetricFamily(
            'mapi_machine_set_status_ready_replicas',
            "Information of the mapi managed Machineset's status for ready replicas",
            labels=['name', 'namespace']
        )
        replicas = GaugeMetricFamily(
            'mapi_machine_set_status_replicas',
            "Information of the mapi managed Machineset's status for replicas",
            labels=['name', 'namespace']
        )
        for machine_set in machine_sets:
            timestamp = machine_set.metadata.creation_timestamp
            created.add_metric(
                [machine_set.name, machine_set.namespace, machine_set.api_version],
                timestamp.timestamp() if timestamp else 0.0
            )
            available.add_metric([machine_set.name, machine_set.namespace], machine_set.available_replicas)
            ready.add_metric([machine_set.name, machine_set.namespace], machine_set.ready_replicas)
            replicas.add_metric([machine_set.name, machine_set.namespace], machine_set.replicas)
        yield created
        yield available
        yield ready
        yield replicas

# ============================================================================
# Metrics Server Management
# ============================================================================

def start_metrics_server(recorder: MetricsRecorder, port: int = 8083):
    """Start the Prometheus metrics server for the recorder's registry"""
    start_http_server(port, registry=recorder.registry)
    LOG.info(f"Metrics server listening on port {port}")
