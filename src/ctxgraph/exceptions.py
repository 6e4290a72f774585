"""Custom exceptions for ctxgraph."""


class CtxGraphError(Exception):
    """Base exception for all ctxgraph errors."""


class ConfigError(CtxGraphError):
    """Configuration-related errors."""


class GraphError(CtxGraphError):
    """Context graph errors."""


class EmptyGraphError(GraphError):
    """Raised when a graph build is requested with no input nodes."""

    def __init__(self, scope_key: str):
        self.scope_key = scope_key
        super().__init__(f"Nothing to build: scope '{scope_key}' has no context nodes")


class StoreError(CtxGraphError):
    """Persistence backend errors."""
