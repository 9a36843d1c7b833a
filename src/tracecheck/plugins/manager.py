# src/tracecheck/plugins/manager.py
"""Plugin manager for discovery, registration, and instantiation.

Uses pluggy for hook-based plugin registration.
"""

from typing import Any

import pluggy

from tracecheck.contracts.errors import SetupError
from tracecheck.contracts.protocols import EventHeightProvider, TraceParser, TraceSource
from tracecheck.core.config import EventProviderSettings, TraceParserSettings, TraceSourceSettings
from tracecheck.core.logging import get_logger
from tracecheck.plugins.hookspecs import PROJECT_NAME, EventProviderSpec, TraceParserSpec, TraceSourceSpec

logger = get_logger(__name__)


def _collect(kind: str, results: list[list[type[Any]]]) -> dict[str, type[Any]]:
    collected: dict[str, type[Any]] = {}
    for classes in results:
        for cls in classes:
            name = cls.name
            if name in collected:
                raise SetupError(f"Duplicate {kind} plugin name: '{name}'. Already registered by {collected[name].__name__}")
            collected[name] = cls
    return collected


class PluginManager:
    """Manages plugin discovery, registration, and lookup.

    Usage:
        manager = PluginManager()
        manager.register_builtin_plugins()
        manager.load_entrypoint_plugins()

        source = manager.create_trace_source(settings.trace_source)
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)

        self._pm.add_hookspecs(TraceSourceSpec)
        self._pm.add_hookspecs(TraceParserSpec)
        self._pm.add_hookspecs(EventProviderSpec)

        # Caches - map name to plugin class for duplicate detection
        self._sources: dict[str, type[TraceSource]] = {}
        self._parsers: dict[str, type[TraceParser]] = {}
        self._providers: dict[str, type[EventHeightProvider]] = {}

    def register_builtin_plugins(self) -> None:
        """Register the filesystem trace source and the Beryx event provider."""
        from tracecheck.plugins.builtins import BuiltinPlugins

        self.register(BuiltinPlugins())

    def load_entrypoint_plugins(self) -> int:
        """Register plugins advertised under the ``tracecheck`` entry point group.

        Returns:
            Number of plugins loaded
        """
        count = self._pm.load_setuptools_entrypoints(PROJECT_NAME)
        self._refresh_caches()
        if count:
            logger.debug("Loaded entry point plugins", count=count)
        return count

    def register(self, plugin: Any) -> None:
        """Register a plugin.

        Args:
            plugin: Plugin instance implementing hook methods
        """
        self._pm.register(plugin)
        self._refresh_caches()

    def _refresh_caches(self) -> None:
        """Refresh plugin caches from hooks.

        Raises:
            SetupError: If two plugins of one kind share a name
        """
        # Collect everything first so a duplicate leaves the caches untouched
        sources = _collect("trace source", self._pm.hook.tracecheck_get_trace_sources())
        parsers = _collect("trace parser", self._pm.hook.tracecheck_get_trace_parsers())
        providers = _collect("event provider", self._pm.hook.tracecheck_get_event_providers())

        self._sources = sources
        self._parsers = parsers
        self._providers = providers

    # === Lookup by name ===

    def get_trace_source_by_name(self, name: str) -> type[TraceSource] | None:
        return self._sources.get(name)

    def get_trace_parser_by_name(self, name: str) -> type[TraceParser] | None:
        return self._parsers.get(name)

    def get_event_provider_by_name(self, name: str) -> type[EventHeightProvider] | None:
        return self._providers.get(name)

    # === Instantiation from settings ===

    def create_trace_source(self, settings: TraceSourceSettings) -> TraceSource:
        """Instantiate the configured trace source.

        Raises:
            SetupError: If no source of that name is registered
        """
        cls = self._require("trace source", settings.plugin, self._sources)
        return cls(dict(settings.options))

    def create_trace_parser(self, settings: TraceParserSettings) -> TraceParser | None:
        """Instantiate the configured trace parser, or None when none is configured.

        Raises:
            SetupError: If a parser is named but not registered
        """
        if settings.plugin is None:
            return None
        cls = self._require("trace parser", settings.plugin, self._parsers)
        return cls(dict(settings.options))

    def create_event_provider(self, settings: EventProviderSettings, *, token: str | None = None) -> EventHeightProvider:
        """Instantiate the configured event height provider.

        Args:
            settings: Provider settings
            token: Overrides settings.token when given

        Raises:
            SetupError: If no provider of that name is registered
        """
        cls = self._require("event provider", settings.plugin, self._providers)
        options = {
            "url": settings.url,
            "token": token if token is not None else settings.token,
            "timeout_seconds": settings.timeout_seconds,
        }
        return cls(options)

    @staticmethod
    def _require(kind: str, name: str, registry: dict[str, type[Any]]) -> type[Any]:
        cls = registry.get(name)
        if cls is None:
            available = ", ".join(sorted(registry)) or "none"
            raise SetupError(f"Unknown {kind} plugin '{name}'. Available: {available}")
        return cls
