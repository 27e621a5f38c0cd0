"""proxyctx: fine-grained change notification for a shared mutable object."""

from importlib.metadata import version as _version

__version__ = _version("proxyctx")

from proxyctx.errors import ProxyContextError, EnvironmentUnsupported, MissingProvider
from proxyctx.dependencies import Dependency, normalize, matches, changed
from proxyctx.subscribers import Subscriber, SubscriberRegistry
from proxyctx.interceptor import LiveView, wrap, unwrap
from proxyctx.store import Store, create_store, UNSET
from proxyctx.context import ProxyContext, ContextHandle, create_context, use_proxy_context
# textual NOT auto-imported — opt-in only

__all__ = [
    "ProxyContextError",
    "EnvironmentUnsupported",
    "MissingProvider",
    "Dependency",
    "normalize",
    "matches",
    "changed",
    "Subscriber",
    "SubscriberRegistry",
    "LiveView",
    "wrap",
    "unwrap",
    "Store",
    "create_store",
    "UNSET",
    "ProxyContext",
    "ContextHandle",
    "create_context",
    "use_proxy_context",
]
