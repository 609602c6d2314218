"""Lease relay data models."""

from lease_relay.models.gateway import GatewayFailure, GatewayResult, LeaseCommand
from lease_relay.models.lease import Lease, LeaseAction, LeaseStatus, Route
from lease_relay.models.owner import OwnerConfig, OwnerConfigUpdate
from lease_relay.models.synchronizer import (
    ActionOutcome,
    ClientMirror,
    SynchronizerConfig,
)

__all__ = [
    "ActionOutcome",
    "ClientMirror",
    "GatewayFailure",
    "GatewayResult",
    "Lease",
    "LeaseAction",
    "LeaseCommand",
    "LeaseStatus",
    "OwnerConfig",
    "OwnerConfigUpdate",
    "Route",
    "SynchronizerConfig",
]
