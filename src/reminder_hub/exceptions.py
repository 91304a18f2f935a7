"""Custom exceptions for Reminder Hub."""


class ReminderHubError(Exception):
    """Base class for all Reminder Hub errors."""


class StorageError(ReminderHubError):
    """Raised when the key-value backend cannot complete an operation."""

    def __init__(self, operation: str, collection: str, detail: str) -> None:
        self.operation = operation
        self.collection = collection
        self.detail = detail
        super().__init__(f"Storage {operation} failed for '{collection}': {detail}")


class GatewayError(ReminderHubError):
    """Raised when the OS notification capability cannot be reached."""


class PolicyReadError(ReminderHubError):
    """Raised when module notification settings cannot be read."""

    def __init__(self, module_id: str, detail: str) -> None:
        self.module_id = module_id
        super().__init__(f"Could not read policy for module '{module_id}': {detail}")


class ModuleNotRegisteredError(ReminderHubError):
    """Raised when no adapter is registered for a module."""

    def __init__(self, module_id: str) -> None:
        self.module_id = module_id
        super().__init__(f"Module '{module_id}' is not registered")


class PayloadError(ReminderHubError):
    """Raised by strict payload decoding when the raw string is malformed."""
