"""
Liveness and readiness probes served by kopf on the liveness endpoint.

Components report into ``config.health_status``. Metrics failures degrade
liveness but do not make the operator unready: remediation still works
without an exporter.
"""

import logging

import kopf
from .config import health_status

LOG = logging.getLogger(__name__)

# Components that must be up before reconciliation results can be trusted
READINESS_COMPONENTS = ("kubernetes", "reconciler")


def set_component_health(component: str, status: bool):
    """Record a component's health, logging transitions only."""
    if health_status.get(component) != status:
        LOG.info(f"Component {component} is now {'healthy' if status else 'unhealthy'}")
    health_status[component] = status


def get_overall_health() -> bool:
    return all(health_status.values())


@kopf.on.probe(id='health')
def health_check(**kwargs):
    return {
        "status": "healthy" if get_overall_health() else "degraded",
        "components": dict(health_status),
    }


@kopf.on.probe(id='ready')
def readiness_check(**kwargs):
    components = {name: health_status.get(name, False) for name in READINESS_COMPONENTS}
    return {
        "status": "ready" if all(components.values()) else "not_ready",
        **components,
    }
