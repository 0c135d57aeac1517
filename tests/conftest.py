"""
Pytest configuration and shared fixtures for the MachineHealthCheck tests.
"""

from datetime import datetime, timezone

import pytest
from prometheus_client import CollectorRegistry

from fakes import FakeStore
from machinehealth.engines import HealthEvaluator
from machinehealth.metrics import MetricsRecorder

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed wall clock for deterministic health evaluation."""
    return NOW


@pytest.fixture
def evaluator(now):
    return HealthEvaluator(clock=lambda: now)


@pytest.fixture
def store():
    """Empty in-memory store."""
    return FakeStore()


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    """Metrics recorder on an isolated registry."""
    return MetricsRecorder(registry)
