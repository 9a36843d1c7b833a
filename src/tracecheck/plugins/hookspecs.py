# src/tracecheck/plugins/hookspecs.py
"""pluggy hook specifications for tracecheck plugins.

Plugins implement these hooks to register themselves with the framework.
The plugin manager calls these hooks during discovery; third-party
packages are found through the ``tracecheck`` entry point group.

Usage (implementing a trace parser plugin):
    from tracecheck.plugins.hookspecs import hookimpl

    class MyParserPlugin:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def tracecheck_get_trace_parsers(self):
            return [MyTraceParser]

Note: @hookspec defines the hook interface (done here).
      @hookimpl marks plugin implementations of those hooks.
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from tracecheck.contracts.protocols import EventHeightProvider, TraceParser, TraceSource

# Project name for pluggy and the setuptools entry point group
PROJECT_NAME = "tracecheck"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class TraceSourceSpec:
    """Hook specifications for trace source plugins."""

    @hookspec
    def tracecheck_get_trace_sources(self) -> list[type["TraceSource"]]:  # type: ignore[empty-body]
        """Return trace source classes.

        Returns:
            List of TraceSource classes (not instances)
        """


class TraceParserSpec:
    """Hook specifications for trace parser plugins."""

    @hookspec
    def tracecheck_get_trace_parsers(self) -> list[type["TraceParser"]]:  # type: ignore[empty-body]
        """Return trace parser classes.

        Returns:
            List of TraceParser classes
        """


class EventProviderSpec:
    """Hook specifications for event height provider plugins."""

    @hookspec
    def tracecheck_get_event_providers(self) -> list[type["EventHeightProvider"]]:  # type: ignore[empty-body]
        """Return event height provider classes.

        Returns:
            List of EventHeightProvider classes
        """
