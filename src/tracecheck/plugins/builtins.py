# src/tracecheck/plugins/builtins.py
"""Hook implementations for the plugins shipped with tracecheck."""

from typing import TYPE_CHECKING

from tracecheck.plugins.hookspecs import hookimpl

if TYPE_CHECKING:
    from tracecheck.contracts.protocols import EventHeightProvider, TraceParser, TraceSource


class BuiltinPlugins:
    """Registers the filesystem trace source and the Beryx event provider.

    No trace parser ships with tracecheck.
    """

    @hookimpl
    def tracecheck_get_trace_sources(self) -> list[type["TraceSource"]]:
        from tracecheck.plugins.sources.filesystem import FilesystemTraceSource

        return [FilesystemTraceSource]

    @hookimpl
    def tracecheck_get_trace_parsers(self) -> list[type["TraceParser"]]:
        return []

    @hookimpl
    def tracecheck_get_event_providers(self) -> list[type["EventHeightProvider"]]:
        from tracecheck.plugins.clients.beryx import BeryxEventProvider

        return [BeryxEventProvider]
