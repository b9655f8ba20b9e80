"""Error taxonomy shared by the provider API and the reconciliation engine.

Transport failures are not wrapped: they surface as
``requests.exceptions.RequestException`` from the call that caused them.
"""

from __future__ import annotations


class DynDNSError(Exception):
    """Base class for errors raised by dyndns-update."""


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


class ConfigError(DynDNSError, ValueError):
    """The configuration file is missing, unreadable or invalid."""


class PatchPreconditionError(DynDNSError):
    """A record cannot be patched with the addresses of this run."""


class NoAddressError(PatchPreconditionError):
    """The address family the record needs was not resolved."""


class WrongRecordTypeError(PatchPreconditionError):
    """Only A and AAAA records carry an address that can be patched."""


class MissingRecordIdError(PatchPreconditionError):
    """The listed record has no id to address the patch to."""


# -----------------------------------------------------------------------------
# Provider
# -----------------------------------------------------------------------------


class ProviderError(DynDNSError):
    """The provider answered with a non-2xx status."""

    def __init__(self, status_code: int, subject: str, body: str):
        self.status_code = status_code
        self.subject = subject
        self.body = body
        super().__init__(f"Error {status_code} while {subject}: {body}")


class EnvelopeError(DynDNSError, ValueError):
    """The provider response body is not the expected JSON envelope."""


class EmptyResultError(DynDNSError):
    """A search rule matched no records, which usually means it is misconfigured."""


# -----------------------------------------------------------------------------
# Zone / pass level
# -----------------------------------------------------------------------------


class ZoneListingError(DynDNSError):
    """No records could be listed for a zone."""


class AddressResolutionError(DynDNSError):
    """No public address could be resolved, so nothing can be reconciled."""
