from .store import (
    KubernetesStore,
    MachineHealthCheckRepository,
    MachineRepository,
    MachineSetRepository,
    NodeRepository,
    Store,
)

__all__ = [
    "KubernetesStore",
    "MachineHealthCheckRepository",
    "MachineRepository",
    "MachineSetRepository",
    "NodeRepository",
    "Store",
]
