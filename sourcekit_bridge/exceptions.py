"""Exception hierarchy for the sourcekit bridge.

Every class carries an ``error_tag`` that the tool layer reports alongside the
rendered message, so callers can branch on the failure kind without parsing
text.
"""

from __future__ import annotations

from typing import Any, Optional


class BridgeError(Exception):
    """Base exception for all bridge errors."""

    error_tag = "bridge_error"


class ConfigurationError(BridgeError):
    """Configuration is invalid or missing required values."""

    error_tag = "configuration_error"


class SpawnError(BridgeError):
    """The language server executable could not be launched."""

    error_tag = "spawn_error"


class ProcessExitedError(BridgeError):
    """The language server process terminated without being asked to."""

    error_tag = "process_exited"

    def __init__(self, returncode: Optional[int] = None):
        self.returncode = returncode
        message = "Language server process terminated unexpectedly"
        if returncode is not None:
            message += f" (exit code {returncode})"
        super().__init__(message)


class ProtocolFramingError(BridgeError):
    """Malformed data was read from the language server's output stream."""

    error_tag = "protocol_error"


class HandshakeError(BridgeError):
    """The initialize exchange failed or was attempted from the wrong state."""

    error_tag = "handshake_error"


class NotReadyError(BridgeError):
    """An operation was attempted before the session finished its handshake."""

    error_tag = "not_ready"


class ConnectionClosedError(BridgeError):
    """The session has been shut down or lost its connection."""

    error_tag = "connection_closed"


class RemoteError(BridgeError):
    """The language server answered a request with an error reply."""

    error_tag = "remote_error"

    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"{message} (code {code})")


class RequestTimeoutError(BridgeError):
    """No reply arrived within the caller's timeout.

    The remote computation is not cancelled; only the local caller stops
    waiting.
    """

    error_tag = "request_timeout"

    def __init__(self, method: str, timeout: float):
        self.method = method
        self.timeout = timeout
        super().__init__(f"Request '{method}' timed out after {timeout:g}s")


class ValidationError(BridgeError):
    """Caller-supplied arguments are out of bounds."""

    error_tag = "validation_error"
