"""topicrelay: route topic-tagged events to functions behind an HTTP gateway."""

from .config import DispatcherConfig
from .contracts import (
    InvocationResult,
    LookupBuilder,
    NoPayloadError,
    InvocationError,
    ResponseSubscriber,
)
from .dispatcher import Dispatcher
from .invoker import Invoker
from .options import InvokeOptions, InvokerOptions
from .routing import RoutingTable

__version__ = "0.1.0"

__all__ = [
    "Dispatcher",
    "DispatcherConfig",
    "Invoker",
    "InvokerOptions",
    "InvokeOptions",
    "RoutingTable",
    "InvocationResult",
    "InvocationError",
    "NoPayloadError",
    "LookupBuilder",
    "ResponseSubscriber",
    "__version__",
]
