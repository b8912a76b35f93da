"""
Exception types and error handling utilities.

The DOM layer raises on an unusable selector, the rule sources on an
unusable rule document and the browser driver on an event the page
would not take.  Everything above catches at its own boundary and
degrades to "no match" or "no action".
"""


class CookieGuardError(Exception):
    """Base class for every error raised by this package."""


class InvalidSelectorError(CookieGuardError):
    """A CSS selector could not be parsed or evaluated."""

    def __init__(self, selector: str, reason: str = "") -> None:
        self.selector = selector
        self.reason = reason
        super().__init__(f"Invalid selector {selector!r}: {reason}" if reason else f"Invalid selector {selector!r}")


class RuleSourceError(CookieGuardError):
    """A rule document could not be fetched, read or parsed."""


class DispatchError(CookieGuardError):
    """The page refused or failed to deliver a synthetic event."""

    def __init__(self, event_type: str, ref: int, reason: str = "") -> None:
        self.event_type = event_type
        self.ref = ref
        self.reason = reason
        message = f"Could not dispatch {event_type!r} to element {ref}"
        super().__init__(f"{message}: {reason}" if reason else message)


def get_error_message(error: BaseException | object) -> str:
    """
    Safely extract an error message from an unknown error type.
    Falls back to the exception class name when the message is empty.
    """
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return "Unknown error"
