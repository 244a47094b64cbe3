"""Building blocks for a node agent with a pluggable provider backend."""

__version__ = "0.1.0"

__all__ = ["cli", "errdefs", "expansion", "monitor", "options", "provider", "tracing"]