"""Organization metrics pipeline: configuration, aggregation, rendering, and CLI."""

from .runner import main, process_org

__all__ = ["main", "process_org"]
