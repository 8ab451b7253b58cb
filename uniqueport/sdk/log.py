import logging
import sys
from types import TracebackType

import structlog
from structlog.typing import EventDict

from uniqueport._version import __version__
from uniqueport.config import settings
from uniqueport.exceptions import FormatError, LockTimeout, StoreError, StoreUnavailable
from uniqueport.sdk.core import port_context

_CONTEXT_FIELDS = ("request_id", "set_key", "stack_id", "logical_resource_id")

_TRANSIENT_EXCEPTIONS = (
    LockTimeout,
    StoreError,
    StoreUnavailable,
    ConnectionError,
    TimeoutError,
    OSError,
)


def add_context_to_event(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add the request context and deployment info to every log line.
    """
    context = port_context.current()
    if context:
        for field in _CONTEXT_FIELDS:
            value = getattr(context, field)
            if value:
                event_dict[field] = value

    event_dict["env"] = settings.ENV
    event_dict["version"] = __version__
    return event_dict


def categorize_exception(exc_type: type) -> str:
    """
    TRANSIENT: the caller may retry (lock contention, store or network outage)
    CORRUPTION: stored state is unreadable and needs an operator
    ERROR: everything else
    """
    if not isinstance(exc_type, type):
        return "ERROR"
    if issubclass(exc_type, FormatError):
        return "CORRUPTION"
    if issubclass(exc_type, _TRANSIENT_EXCEPTIONS):
        return "TRANSIENT"
    return "ERROR"


def add_error_processor(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Tag log lines carrying an exception with its type, category and the frame that raised it.
    """
    exc_info = event_dict.get("exc_info")
    if exc_info is True:
        exc_info = sys.exc_info()
    elif isinstance(exc_info, BaseException):
        exc_info = (type(exc_info), exc_info, exc_info.__traceback__)

    if not isinstance(exc_info, tuple) or exc_info[0] is None:
        return event_dict

    exc_type, _, tb = exc_info
    event_dict["error_type"] = f"{exc_type.__module__}.{exc_type.__name__}"
    event_dict["error_category"] = categorize_exception(exc_type)
    if tb is not None:
        event_dict["error_location"] = _raising_frame(tb)
    return event_dict


def _raising_frame(tb: TracebackType) -> str:
    while tb.tb_next is not None:
        tb = tb.tb_next
    code = tb.tb_frame.f_code
    return f"{code.co_filename.rsplit('/', 1)[-1]}:{tb.tb_lineno}:{code.co_name}"


def setup_logger() -> None:
    """
    Setup the logger with the specified format
    """
    if settings.JSON_LOGGING:
        output_processors: list = [structlog.processors.EventRenamer("msg"), structlog.processors.JSONRenderer()]
    else:
        output_processors = [structlog.dev.ConsoleRenderer(sort_keys=False)]

    log_level = logging.getLevelNamesMapping().get(settings.LOG_LEVEL.upper(), logging.INFO)

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                }
            ),
            add_context_to_event,
            add_error_processor,
            structlog.processors.format_exc_info,
        ]
        + output_processors,
    )
    logging.getLogger("uvicorn.access").disabled = True
