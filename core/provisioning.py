"""
core/provisioning.py
--------------------
Where the target database comes from.

The translation core only ever needs a :class:`TargetConnection`. Creating a
managed server, firewall rules and the like belongs to a provisioner behind
:class:`TargetProvisioner`; the default implementation points at a server
that already exists and makes no control-plane calls.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from logger import get_logger
from models.connection import TargetConnection

log = get_logger(__name__)


@dataclass(frozen=True)
class ProvisioningRequest:
    """What the caller wants provisioned (or located)."""
    server: str
    database: str
    port: int = 1433
    user: str = ""
    password: str = ""
    trusted_connection: bool = False
    schema_name: str = "dbo"


class TargetProvisioner(Protocol):
    def provision(self, request: ProvisioningRequest) -> TargetConnection:
        """Make the target database available and return how to reach it."""
        ...


class ExistingServerProvisioner:
    """Returns connection info for a server that is already running."""

    def provision(self, request: ProvisioningRequest) -> TargetConnection:
        conn = TargetConnection(
            server=request.server,
            port=request.port,
            database=request.database,
            user=request.user,
            password=request.password,
            trusted_connection=request.trusted_connection,
            schema_name=request.schema_name,
        )
        log.info("Using existing target %s.", conn.display())
        return conn
