"""Units of work held by the WorkQueue.

A work item is either a `Request` (one API call plus the callback that
receives its outcome) or a bare `Callback` run in queue order.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

from pinsync.domain.models.common import Endpoint

# callback(success, payload)
RequestCallback = Callable[[bool, Any], None]


@dataclass(frozen=True)
class Request:
    """Queued API call."""
    endpoint: Endpoint
    params: Dict[str, Any] = field(default_factory=dict)
    callback: Optional[RequestCallback] = None
    timeout: Optional[float] = None  # seconds; None means no write timeout


@dataclass(frozen=True)
class Callback:
    """Queued function, run synchronously when it reaches the head."""
    fn: Callable[[], None]


WorkItem = Union[Request, Callback]
