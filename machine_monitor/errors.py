from __future__ import annotations


class MonitorError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500


class ValidationError(MonitorError):
    status_code = 400


class MachineNotFound(MonitorError):
    status_code = 404

    def __init__(self, machine_id: object) -> None:
        super().__init__("Machine not found")
        self.machine_id = machine_id


class SubscriptionClosed(Exception):
    """Raised when delivering to a subscription that has been closed."""
