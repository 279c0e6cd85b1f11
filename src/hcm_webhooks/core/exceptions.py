"""Exceptions for the webhook subsystem.

Every exception carries a stable ``error_code`` that the API layer maps to an
HTTP status. Messages are safe to return to callers; internal detail belongs
in the logs, not in the exception text surfaced to webhook senders.
"""

from uuid import UUID


class HCMWebhookError(Exception):
    """Base exception for all webhook service errors."""

    error_code = "internal_error"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)

    @property
    def message(self) -> str:
        return self.args[0]


class ValidationError(HCMWebhookError):
    """Raised when configuration input is missing or malformed."""

    error_code = "validation_error"


class ConflictError(HCMWebhookError):
    """Raised when an operation would violate a uniqueness or state rule."""

    error_code = "conflict"


class AuthenticationError(HCMWebhookError):
    """Raised when an inbound webhook fails credential validation.

    Attributes:
        reason: Dispatcher reason, kept for logs and never echoed to the caller
    """

    error_code = "unauthorized"

    def __init__(self, reason: str | None = None):
        super().__init__("Authentication failed")
        self.reason = reason


class NotFoundError(HCMWebhookError):
    """Raised when a tenant-scoped resource does not exist."""

    error_code = "not_found"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ConfigurationNotFoundError(NotFoundError):
    """Raised when no configuration matches the tenant and path or id.

    Attributes:
        tenant_id: Tenant that was searched
        reference: Endpoint path or configuration id that did not match
    """

    def __init__(self, tenant_id: UUID | str, reference: str | int):
        super().__init__("Webhook configuration not found")
        self.tenant_id = tenant_id
        self.reference = reference

    def __str__(self) -> str:
        return f"Webhook configuration not found: {self.reference} (tenant {self.tenant_id})"


class EventNotFoundError(NotFoundError):
    """Raised when an event id does not exist within the tenant."""

    def __init__(self, tenant_id: UUID | str, event_id: int):
        super().__init__("Webhook event not found")
        self.tenant_id = tenant_id
        self.event_id = event_id

    def __str__(self) -> str:
        return f"Webhook event not found: {self.event_id} (tenant {self.tenant_id})"


class ConfigurationInactiveError(HCMWebhookError):
    """Raised when a webhook arrives for a deactivated configuration."""

    error_code = "configuration_inactive"

    def __init__(self, configuration_id: int):
        super().__init__("Webhook configuration is inactive")
        self.configuration_id = configuration_id


class MalformedPayloadError(HCMWebhookError):
    """Raised when an inbound body cannot be parsed as a JSON object."""

    error_code = "invalid_payload"

    def __init__(self, message: str = "Invalid JSON payload"):
        super().__init__(message)


class StorageError(HCMWebhookError):
    """Raised when the relational store fails.

    Nothing partial is persisted when this is raised, so the sender may
    safely redeliver.
    """

    error_code = "storage_error"

    def __init__(self, operation: str):
        super().__init__("Internal server error")
        self.operation = operation

    def __str__(self) -> str:
        return f"Storage failure during {self.operation}"


class ProcessingError(HCMWebhookError):
    """Raised by business logic to fail an event with an operator-facing message."""

    error_code = "processing_error"

    def __init__(self, message: str):
        super().__init__(message)


class EncryptionError(HCMWebhookError):
    """Raised when stored credentials cannot be encrypted or decrypted."""

    error_code = "encryption_error"
