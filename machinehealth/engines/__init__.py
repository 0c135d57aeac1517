"""
Reconciliation engines: target resolution, health evaluation, remediation
and event routing.
"""

from .evaluator import DEFAULT_NODE_STARTUP_TIMEOUT, HealthEvaluator
from .remediation import RemediationAction, RemediationEngine, is_control_plane
from .router import EventRouter
from .targets import Target, TargetResolver

__all__ = [
    "DEFAULT_NODE_STARTUP_TIMEOUT",
    "EventRouter",
    "HealthEvaluator",
    "RemediationAction",
    "RemediationEngine",
    "Target",
    "TargetResolver",
    "is_control_plane",
]
