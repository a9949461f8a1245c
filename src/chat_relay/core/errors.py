"""Exception hierarchy shared by the store, broadcaster and router.

Every error carries a stable machine-readable ``reason`` so callers can tell
"your input was invalid" apart from "the backend had a transient fault".
"""

from __future__ import annotations


class RelayError(RuntimeError):
    """Base class for all chat relay failures."""

    reason = "internal_error"


class ValidationError(RelayError):
    """Caller-supplied input failed a precondition.

    Attributes:
        reason: Stable machine-readable reason string (e.g. ``empty_content``).
        message: Human readable text returned to the client.
    """

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


class StoreUnavailable(RelayError):
    """Transient persistence-layer fault. Never retried inside the store."""

    reason = "store_unavailable"


class DeliveryChannelError(RelayError):
    """The delivery channel could not be constructed or is misconfigured."""

    reason = "delivery_channel_unavailable"


class DeliveryFailed(RelayError):
    """A delivery addressed to a single requester failed without a gone signal."""

    reason = "delivery_failed"


def empty_content() -> ValidationError:
    """Return the rejection raised for absent or blank message content."""
    return ValidationError("empty_content", "Message content is required")


def connection_not_found() -> ValidationError:
    """Return the rejection raised when the sender is not in the registry."""
    return ValidationError("connection_not_found", "Connection not found")


def unknown_action() -> ValidationError:
    """Return the rejection raised for an unrecognized envelope action."""
    return ValidationError("unknown_action", "Unknown action")


def malformed_payload() -> ValidationError:
    """Return the rejection raised when an envelope cannot be decoded."""
    return ValidationError("malformed_payload", "Invalid request payload")
