"""Exception hierarchy for proxyctx."""


class ProxyContextError(Exception):
    """Base class for all proxyctx exceptions."""


class EnvironmentUnsupported(ProxyContextError):
    """Raised at construction when no mutation interceptor is available."""

    def __init__(self, interceptor=None):
        self.interceptor = interceptor
        super().__init__(
            f"Mutation interception is not supported in this environment "
            f"(interceptor={interceptor!r})."
        )


class MissingProvider(ProxyContextError, LookupError):
    """Raised when reading or subscribing to a context that has no store attached."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No {name} provider found.")
