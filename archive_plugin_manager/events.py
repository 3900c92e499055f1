"""Progress events emitted by plugin operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .errors import PluginManagerError


class EventKind(Enum):
    """Kind of a progress event."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    """
    A single progress report.

    Every operation produces zero or more INFO events followed by exactly one
    terminal SUCCESS or ERROR event. ``data`` carries the operation result on
    success; ``error`` carries the exception on failure.
    """

    kind: EventKind
    message: str
    data: Any = None
    error: Optional[PluginManagerError] = None

    @classmethod
    def info(cls, message: str, data: Any = None) -> "ProgressEvent":
        return cls(EventKind.INFO, message, data)

    @classmethod
    def success(cls, message: str, data: Any = None) -> "ProgressEvent":
        return cls(EventKind.SUCCESS, message, data)

    @classmethod
    def failure(cls, error: PluginManagerError) -> "ProgressEvent":
        return cls(EventKind.ERROR, str(error), error=error)

    @property
    def is_terminal(self) -> bool:
        return self.kind is not EventKind.INFO

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict in the ``{type, message, data}`` shape hosts expect."""
        result: Dict[str, Any] = {"type": self.kind.value, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        return result


ProgressCallback = Callable[[ProgressEvent], None]
