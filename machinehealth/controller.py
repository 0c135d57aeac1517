"""
Kopf event handlers for the MachineHealthCheck operator.
"""

import logging

import kopf

from .config import Resources, get_settings
from .health import set_component_health
from .models import NamespacedName
from .operator import MachineHealthCheckOperator

LOG = logging.getLogger(__name__)

# ============================================================================
# Global operator instance
# ============================================================================

operator = MachineHealthCheckOperator()

# ============================================================================
# Kopf Event Handlers
# ============================================================================

@kopf.on.startup()
async def startup(settings: kopf.OperatorSettings, **_):
    """Operator startup configuration"""
    config = get_settings()
    # Remediation outcomes are logged; only warnings become k8s events
    settings.posting.level = logging.WARNING
    try:
        await operator.initialize()
    except Exception as e:
        LOG.error(f"Startup failed: {e}")
        set_component_health("kubernetes", False)
        raise

    LOG.info("MachineHealthCheck operator started successfully")
    LOG.info(f"Log level: {config.log_level}")
    LOG.info(f"Watch namespace: {config.watch_namespace or 'all'}")
    LOG.info(f"Metrics port: {config.metrics_port}")
    LOG.info(f"Node startup timeout: {config.node_startup_timeout}")


@kopf.daemon(Resources.HEALTHCHECK_GROUP, Resources.HEALTHCHECK_VERSION, Resources.HEALTHCHECK_PLURAL,
             cancellation_timeout=10.0)
async def reconcile_health_check(name, namespace, stopped, **kwargs):
    """One reconcile loop per MachineHealthCheck, serialized by construction"""
    await operator.run_reconcile_loop(NamespacedName(namespace, name), stopped)


@kopf.on.update(Resources.HEALTHCHECK_GROUP, Resources.HEALTHCHECK_VERSION, Resources.HEALTHCHECK_PLURAL,
                field='spec')
async def on_spec_change(name, namespace, **kwargs):
    """Re-evaluate immediately when a policy is edited"""
    LOG.info(f"Updated MachineHealthCheck '{name}' in '{namespace}'")
    operator.trigger(NamespacedName(namespace, name))


@kopf.on.event(Resources.MACHINE_GROUP, Resources.MACHINE_VERSION, Resources.MACHINE_PLURAL)
async def on_machine_event(event, body, **kwargs):
    """Route machine changes to the policies selecting them"""
    if event.get('type') is None:
        # Initial listing; each daemon runs a full pass on start anyway
        return
    await operator.route_machine(body)


@kopf.on.event('v1', 'nodes')
async def on_node_event(event, body, **kwargs):
    """Route node changes through the node's machine annotation"""
    if event.get('type') is None:
        return
    await operator.route_node(body)

# ============================================================================
# Cleanup
# ============================================================================

@kopf.on.cleanup()
async def cleanup(**kwargs):
    """Cleanup on operator shutdown"""
    LOG.info("Cleaning up operator resources...")
    operator.cleanup()
