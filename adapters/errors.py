"""Typed failures raised by facility adapters."""
from typing import Optional


class FacilityError(Exception):
    """Base class for every adapter failure.

    ``code`` is the stable identifier surfaced to API callers and
    ``retryable`` tells them whether trying again later can help.
    """

    code = 'FACILITY_ERROR'
    retryable = False

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidCredentials(FacilityError):
    """The vendor rejected the login. Do not retry automatically."""

    code = 'INVALID_CREDENTIALS'

    def __init__(self, message: str = 'Login failed. Check your email and password.',
                 details: Optional[str] = None):
        super().__init__(message, details)


class NeedsReauth(FacilityError):
    """The session token expired mid-use; the user must reconnect."""

    code = 'NEEDS_REAUTH'

    def __init__(self, message: str = 'Session expired. Please reconnect.',
                 details: Optional[str] = None):
        super().__init__(message, details)


class Unreachable(FacilityError):
    """Network, DNS or timeout failure talking to the vendor."""

    code = 'UNREACHABLE'
    retryable = True

    def __init__(self, message: str = 'Vendor site is temporarily unavailable.',
                 details: Optional[str] = None):
        super().__init__(message, details)


class UpstreamError(FacilityError):
    """The vendor answered with an unexpected HTTP status."""

    code = 'UPSTREAM_ERROR'
    retryable = True

    def __init__(self, status: int, message: Optional[str] = None,
                 details: Optional[str] = None):
        super().__init__(message or f'Vendor returned HTTP {status}', details)
        self.status = status


class UpstreamSchemaMismatch(FacilityError):
    """A parse assumption about the vendor payload no longer holds."""

    code = 'UPSTREAM_ERROR'


class PartialImportError(FacilityError):
    """One item of a batch import failed; the rest of the batch continues."""

    code = 'PARTIAL_IMPORT'

    def __init__(self, reference: str, message: str):
        super().__init__(message)
        self.reference = reference


class UnsupportedOperation(FacilityError):
    """The vendor has no equivalent of the requested operation."""

    code = 'UNSUPPORTED'


class MissingFacility(FacilityError):
    """A multi-facility vendor was called without a facility slug."""

    code = 'BAD_REQUEST'

    def __init__(self, message: str = 'facility_id is required',
                 details: Optional[str] = None):
        super().__init__(message, details)
