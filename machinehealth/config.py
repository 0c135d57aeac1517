"""
Configuration and logging setup for the MachineHealthCheck operator.
"""

import logging
import warnings
from datetime import timedelta
from functools import lru_cache
from typing import Dict, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Suppress specific warnings
warnings.filterwarnings("ignore", category=DeprecationWarning)
warnings.filterwarnings("ignore", message=".*urllib3.*")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ============================================================================
# Logging Configuration
# ============================================================================

def setup_logging(level: str = "INFO"):
    """Configure logging to reduce noise"""
    logging.getLogger('kubernetes').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    logging.basicConfig(
        level=level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

# ============================================================================
# API Coordinates
# ============================================================================

class Resources:
    """Group/version/plural of the resources the operator watches"""

    HEALTHCHECK_GROUP = 'healthchecking.openshift.io'
    HEALTHCHECK_VERSION = 'v1alpha1'
    HEALTHCHECK_PLURAL = 'machinehealthchecks'

    MACHINE_GROUP = 'machine.openshift.io'
    MACHINE_VERSION = 'v1beta1'
    MACHINE_PLURAL = 'machines'
    MACHINESET_PLURAL = 'machinesets'

    # Inventory metrics are collected here when no namespace is watched
    MACHINE_API_NAMESPACE = 'openshift-machine-api'

# ============================================================================
# Operator Settings
# ============================================================================

class OperatorSettings(BaseSettings):
    """Runtime settings, loaded from the environment or a .env file."""

    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level"))
    watch_namespace: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("WATCH_NAMESPACE", "watch_namespace"))
    kubeconfig_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("KUBECONFIG_PATH", "kubeconfig_path"))

    metrics_port: int = Field(default=8083, validation_alias=AliasChoices("METRICS_PORT", "metrics_port"))
    health_port: int = Field(default=8080, validation_alias=AliasChoices("HEALTH_PORT", "health_port"))

    # Grace period for a new machine to acquire a node
    node_startup_timeout_seconds: float = Field(
        default=600.0,
        validation_alias=AliasChoices("NODE_STARTUP_TIMEOUT_SECONDS", "node_startup_timeout_seconds"))
    # 0 disables periodic resync; reconciliation is then purely event driven
    resync_interval_seconds: float = Field(
        default=0.0, validation_alias=AliasChoices("RESYNC_INTERVAL_SECONDS", "resync_interval_seconds"))
    error_backoff_base_seconds: float = Field(
        default=5.0, validation_alias=AliasChoices("ERROR_BACKOFF_BASE_SECONDS", "error_backoff_base_seconds"))
    error_backoff_max_seconds: float = Field(
        default=300.0, validation_alias=AliasChoices("ERROR_BACKOFF_MAX_SECONDS", "error_backoff_max_seconds"))
    abort_on_remediation_error: bool = Field(
        default=True,
        validation_alias=AliasChoices("ABORT_ON_REMEDIATION_ERROR", "abort_on_remediation_error"))

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        if v.upper() not in _LOG_LEVELS:
            raise ValueError(f'log_level must be one of {", ".join(_LOG_LEVELS)}')
        return v.upper()

    @field_validator('node_startup_timeout_seconds', 'error_backoff_base_seconds', 'error_backoff_max_seconds')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError('must be positive')
        return v

    @field_validator('resync_interval_seconds')
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError('must not be negative')
        return v

    @property
    def node_startup_timeout(self) -> timedelta:
        return timedelta(seconds=self.node_startup_timeout_seconds)

    @property
    def resync_interval(self) -> Optional[float]:
        return self.resync_interval_seconds or None


@lru_cache()
def get_settings() -> OperatorSettings:
    return OperatorSettings()

# ============================================================================
# Health Status (Global State)
# ============================================================================

health_status: Dict[str, bool] = {
    "kubernetes": True,
    "reconciler": True,
    "metrics": True,
}
