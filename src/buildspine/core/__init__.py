"""buildspine core -- the event bus and the staleness cache.

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Structured error hierarchy (BuildSpineError, ...)
        result.py          Result[T] envelope (Ok / Err / try_result_async)

    Layer 2 -- Ambient
        logging.py         structlog configuration + injected/null loggers
        settings.py        pydantic-settings BuildSpineSettings

    Layer 3 -- Components
        cache.py           StaleCache -- persisted mtime/size fingerprints
        events/            EventBus -- priority-grouped asyncio dispatcher

The two components do not depend on each other.
"""

from buildspine.core.cache import CheckOutcome, Fingerprint, LocalFileSystem, StaleCache
from buildspine.core.errors import (
    BuildSpineError,
    CorruptCacheError,
    HandlerFailure,
    HandlerFailureError,
    InvalidEventError,
    InvalidHandlerError,
    MissingPhysicalFileError,
)
from buildspine.core.events import DEFAULT_PRIORITY, EventBus, Registration
from buildspine.core.result import Err, Ok, Result

__all__ = [
    "BuildSpineError",
    "CheckOutcome",
    "CorruptCacheError",
    "DEFAULT_PRIORITY",
    "Err",
    "EventBus",
    "Fingerprint",
    "HandlerFailure",
    "HandlerFailureError",
    "InvalidEventError",
    "InvalidHandlerError",
    "LocalFileSystem",
    "MissingPhysicalFileError",
    "Ok",
    "Registration",
    "Result",
    "StaleCache",
]
