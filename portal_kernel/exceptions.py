"""
Typed exception hierarchy for the portal backend.

Every error carries a class-level ``code`` (machine-readable, safe to return
to an operator UI) and structured attributes instead of a bare message, so
callers catch by type and never parse message text.

    PortalKernelError (base)
    |
    +-- UpstreamFeedError              feed unreachable or malformed; aborts a run
    |   +-- FeedUnavailableError
    |   +-- FeedMalformedError
    |
    +-- ItemReconcileError             one reference item failed; run continues
    |   +-- MissingIdentifierError
    |   +-- OrganizationCodeConflictError
    |   +-- UnsupportedReferenceKindError
    |
    +-- MaintenanceError               bulk maintenance failed; propagated
    |
    +-- EngineNotInitializedError
    +-- ConfigurationError
"""

from __future__ import annotations


class PortalKernelError(Exception):
    """
    Base exception for all portal errors.

    All subclasses must have a ``code`` class attribute.
    """

    code: str = "PORTAL_ERROR"


# ---------------------------------------------------------------------------
# Upstream feed (run-level, "System" scope)
# ---------------------------------------------------------------------------


class UpstreamFeedError(PortalKernelError):
    """The upstream NSI feed could not be consumed. The run is aborted."""

    code: str = "SYSTEM"


class FeedUnavailableError(UpstreamFeedError):
    """Transport failure, timeout, or non-success HTTP status."""

    code: str = "FEED_UNAVAILABLE"

    def __init__(self, endpoint: str, reason: str, status_code: int | None = None):
        self.endpoint = endpoint
        self.reason = reason
        self.status_code = status_code
        status = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"NSI feed unavailable at {endpoint}{status}: {reason}")


class FeedMalformedError(UpstreamFeedError):
    """Feed responded, but the payload does not have the expected shape."""

    code: str = "FEED_MALFORMED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Malformed NSI feed payload: {reason}")


# ---------------------------------------------------------------------------
# Item-level reconciliation
# ---------------------------------------------------------------------------


class ItemReconcileError(PortalKernelError):
    """A single reference item could not be applied."""

    code: str = "ITEM_RECONCILE_FAILED"


class MissingIdentifierError(ItemReconcileError):
    code: str = "MISSING_IDENTIFIER"

    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        super().__init__(f"{entity_type} item has no id")


class OrganizationCodeConflictError(ItemReconcileError):
    """Another organization already owns the code carried by the delta."""

    code: str = "ORGANIZATION_CODE_CONFLICT"

    def __init__(self, organization_id: str, org_code: str, owner_id: str):
        self.organization_id = organization_id
        self.org_code = org_code
        self.owner_id = owner_id
        super().__init__(
            f"Organization {organization_id}: code {org_code!r} "
            f"already belongs to organization {owner_id}"
        )


class UnsupportedReferenceKindError(ItemReconcileError):
    """The integrity guard was asked for a parent kind it cannot stub."""

    code: str = "UNSUPPORTED_REFERENCE_KIND"

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Cannot ensure existence of {kind!r} references")


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


class MaintenanceError(PortalKernelError):
    """A maintenance bulk operation failed. Not retried."""

    code: str = "MAINTENANCE_FAILED"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Maintenance operation {operation} failed: {reason}")


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class EngineNotInitializedError(PortalKernelError):
    code: str = "ENGINE_NOT_INITIALIZED"

    def __init__(self) -> None:
        super().__init__("Engine not initialized. Call init_engine_from_url() first.")


class ConfigurationError(PortalKernelError):
    code: str = "CONFIGURATION_INVALID"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid setting {key}: {reason}")
