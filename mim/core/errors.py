"""
Mim - Exceptions

Failures are contained per entry or per file; none of these abort a pass.
"""


class MimError(Exception):
    """Base class for all Mim errors."""


class DelegateError(MimError):
    """A delegated call failed: API error, timeout, or no usable result."""


class VerdictParseError(DelegateError):
    """The delegate answered, but the answer does not fit the verdict contract."""


class ToolError(MimError):
    """A sandboxed tool call was rejected or failed. Reported back to the model."""


class ReviewNotFoundError(MimError):
    """No pending review exists for the requested entry ID."""
