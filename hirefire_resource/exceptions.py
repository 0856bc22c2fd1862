"""
Exception classes for the HireFire resource agent.

Exception hierarchy
-------------------
::

    Exception (Python built-in)
    └── HireFireError (base class for all agent exceptions)
        ├── DispatchError                    → web metrics delivery failed
        ├── InvalidDynoNameError             → bad worker name at configuration
        ├── MissingDynoFnError               → worker registered without a callable
        ├── MissingQueueError                → macro called without queue names
        └── JobQueueLatencyUnsupportedError  → macro cannot measure latency

``DispatchError`` carries a ``kind`` drawn from the closed
``DispatchErrorKind`` enumeration.  The dispatcher only ever logs the
message; the kind exists so that direct callers of ``submit_buffer`` and
the test suite can tell failure modes apart without parsing text.
"""

import enum


class HireFireError(Exception):
    """
    Base exception for all agent errors.

    Every exception carries a ``detail`` attribute containing a
    human-readable description of the failure.  Subclasses define a
    ``default_detail`` class attribute used when no explicit detail is
    passed to the constructor.
    """

    default_detail: str = "A HireFire error occurred."

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class DispatchErrorKind(enum.Enum):
    """The fixed set of ways a web metrics dispatch can fail."""

    CONFIGURATION = "configuration"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    UNEXPECTED_STATUS = "unexpected_status"
    NETWORK = "network"


class DispatchError(HireFireError):
    """
    Raised when a buffer of request queue time samples could not be
    delivered to the HireFire collector.

    Attributes:
        kind: Which of the ``DispatchErrorKind`` failure modes occurred.
    """

    default_detail = "Unable to dispatch web metrics."

    def __init__(
        self,
        detail: str | None = None,
        kind: DispatchErrorKind = DispatchErrorKind.NETWORK,
    ) -> None:
        self.kind = kind
        super().__init__(detail)


class InvalidDynoNameError(HireFireError):
    """Raised when a worker is registered under a name HireFire cannot match to a Procfile entry."""

    default_detail = "Invalid dyno name."


class MissingDynoFnError(HireFireError):
    """Raised when a worker is registered without a callable that returns its metric."""

    default_detail = "Missing dyno function."


class MissingQueueError(HireFireError):
    default_detail = "No queue was specified. Please specify at least one queue."


class JobQueueLatencyUnsupportedError(HireFireError):
    """Raised by job queue macros that cannot measure job queue latency."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} currently does not support job queue latency measurements.")
