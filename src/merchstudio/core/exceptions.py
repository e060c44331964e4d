"""Exception hierarchy for the Merch Studio back end.

Every failure that can end a request is raised as a subclass of
:class:`StudioError`.  The subclass determines two things the HTTP layer
needs: a short ``kind`` tag that the client script can use to point the
admin at the right place (the form, the Config page, the provider, or the
server's disk), and the HTTP status code of the JSON error response.

Taxonomy
--------
========================  ===============  ======  ================================
Class                     kind             Status  Raised when
========================  ===============  ======  ================================
DesignValidationError     ``validation``   400     A required form field is empty
ConfigurationError        ``configuration`` 503    The selected provider has no key
ProviderError             ``provider``     502     Transport, HTTP or payload error
StorageError              ``storage``      500     Image or JSON write failed
NotFoundError             ``not_found``    404     Unknown tool, store or design id
========================  ===============  ======  ================================

Provider messages are carried through verbatim so admins can debug upstream
failures without digging through server logs.
"""

from __future__ import annotations


class StudioError(Exception):
    """Base class for all request-terminating errors."""

    kind: str = "error"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        """Return the JSON body sent to the client for this error."""
        return {"success": False, "error": self.message, "kind": self.kind}


class DesignValidationError(StudioError):
    """A form submission is missing a required value."""

    kind = "validation"
    status_code = 400


class ConfigurationError(StudioError):
    """The selected provider cannot be used with the current settings."""

    kind = "configuration"
    status_code = 503


class ProviderError(StudioError):
    """The image provider failed or returned no usable image."""

    kind = "provider"
    status_code = 502


class StorageError(StudioError):
    """Writing an image file or a JSON store failed."""

    kind = "storage"
    status_code = 500


class NotFoundError(StudioError):
    """A tool, store or design record does not exist."""

    kind = "not_found"
    status_code = 404
