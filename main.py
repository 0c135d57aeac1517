# ============================================================================
# Kopf Operator Entrypoint for MachineHealthCheck remediation
# ============================================================================

import logging
import sys

import kopf

from machinehealth.config import get_settings, setup_logging

# Registers the kopf handlers and probes
from machinehealth import controller, health  # noqa: F401

LOG = logging.getLogger(__name__)


def main():
    """Main entry point for the MachineHealthCheck operator."""
    settings = get_settings()
    setup_logging(settings.log_level)

    LOG.info("Starting MachineHealthCheck operator...")
    LOG.info(f"Python version: {sys.version}")

    scope = {"namespaces": [settings.watch_namespace]} if settings.watch_namespace else {"clusterwide": True}
    try:
        kopf.run(
            liveness_endpoint=f"http://0.0.0.0:{settings.health_port}/healthz",
            **scope
        )
    except KeyboardInterrupt:
        LOG.info("Operator shutdown requested")


if __name__ == "__main__":
    main()
