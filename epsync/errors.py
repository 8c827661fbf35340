from __future__ import annotations


class EpsyncError(Exception):
    pass


class ConfigError(EpsyncError):
    """Malformed or missing configuration."""


class SourceError(EpsyncError):
    """Listing the managed services failed; the current cycle is abandoned."""


class ResolverError(EpsyncError):
    """Listing the nodes for a selector failed."""

    def __init__(self, selector: str, message: str):
        super().__init__(f"listing nodes for selector {selector!r} failed: {message}")
        self.selector = selector


class PerNodeError(EpsyncError):
    """A single node has no usable address."""

    def __init__(self, node_name: str, message: str = "host address unknown"):
        super().__init__(f"failed to determine address for node ({node_name}): {message}")
        self.node_name = node_name


class ApplyError(EpsyncError):
    """Reading, creating or replacing an Endpoints object failed."""

    def __init__(self, ref: str, message: str, status: int | None = None):
        super().__init__(f"{ref}: {message}")
        self.ref = ref
        self.status = status

    @property
    def conflict(self) -> bool:
        return self.status == 409
