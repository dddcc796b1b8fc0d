"""Exceptions raised by the catalog, lineage and admin layers."""


class MetaPortalError(Exception):
    """Base class for MetaPortal errors."""


class NotFoundError(MetaPortalError):
    """A record with the requested id or name does not exist."""


class DuplicateError(MetaPortalError):
    """A record clashes with an existing unique name."""


class ValidationError(MetaPortalError):
    """Input cannot be accepted as submitted."""


class SetupFailedError(MetaPortalError):
    """The admin project setup did not complete."""
