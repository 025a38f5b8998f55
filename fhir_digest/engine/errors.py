"""Exceptions raised by the digest engine.

Only bundle-level structural problems are raised. Problems with a single
resource are reported as ``Unhandled`` records instead.
"""


class DigestError(ValueError):
    """Base class for errors that abort a whole transform call."""


class BundleValidationError(DigestError):
    """The input is not a usable bundle (absent, empty, or without an anchor)."""


class UnknownBundleTypeError(DigestError):
    """No heuristic classification rule matched the bundle."""


class UnsupportedDocumentTypeError(DigestError):
    """The bundle's type has no document view."""
