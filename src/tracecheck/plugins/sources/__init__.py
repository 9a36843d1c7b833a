"""Builtin trace sources."""

from tracecheck.plugins.sources.filesystem import FilesystemTraceSource

__all__ = ["FilesystemTraceSource"]
