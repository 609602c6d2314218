"""Gateway error taxonomy."""

from typing import Any, Optional

from lease_relay.models.gateway import GatewayFailure


class LeaseGatewayError(Exception):
    """Base class for failures the gateway reports to its caller."""

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_response(self) -> GatewayFailure:
        return GatewayFailure(error=self.message, details=self.details)


class Unauthorized(LeaseGatewayError):
    """Missing or unresolvable caller credential. Nothing is forwarded."""

    status_code = 401


class InvalidArgument(LeaseGatewayError):
    """Malformed session id, unknown action or out-of-range TTL."""

    status_code = 400


class UpstreamUnavailable(LeaseGatewayError):
    """The automation engine could not be reached or answered with a failure."""

    status_code = 500


class ConfigurationMissing(LeaseGatewayError):
    """No webhook URL could be resolved for the owner."""

    status_code = 500
