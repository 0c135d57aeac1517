"""
MachineHealthCheck operator: finds machines whose nodes have gone unhealthy
and remediates them by deletion or reboot request.
"""

__version__ = "0.1.0"
