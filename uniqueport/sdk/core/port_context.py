from contextvars import ContextVar
from dataclasses import dataclass


@dataclass
class PortContext:
    request_id: str | None = None
    set_key: str | None = None
    stack_id: str | None = None
    logical_resource_id: str | None = None

    def __repr__(self) -> str:
        return f"PortContext(request_id={self.request_id}, set_key={self.set_key}, stack_id={self.stack_id}, logical_resource_id={self.logical_resource_id})"

    def __str__(self) -> str:
        return self.__repr__()


_context: ContextVar[PortContext | None] = ContextVar(
    "Port context",
    default=None,
)


def current() -> PortContext | None:
    """
    Get the current context

    Returns:
        The current context, or None if there is none
    """
    return _context.get()


def ensure_context() -> PortContext:
    """
    Get the current context, creating an empty one if there is none
    """
    context = current()
    if context is None:
        context = PortContext()
        _context.set(context)
    return context


def set(context: PortContext) -> None:
    _context.set(context)


def reset() -> None:
    _context.set(None)
