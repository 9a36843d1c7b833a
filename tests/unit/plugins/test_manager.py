"""Tests for plugin registration and instantiation."""

from pathlib import Path

import pytest

from tests.fixtures import FakeEventProvider, FakeTraceParser, FakeTraceSource
from tracecheck.contracts import SetupError
from tracecheck.core.config import EventProviderSettings, TraceParserSettings, TraceSourceSettings
from tracecheck.plugins import PluginManager, hookimpl
from tracecheck.plugins.clients.beryx import BeryxEventProvider
from tracecheck.plugins.sources.filesystem import FilesystemTraceSource


class FakePlugins:
    @hookimpl
    def tracecheck_get_trace_sources(self) -> list[type]:
        return [FakeTraceSource]

    @hookimpl
    def tracecheck_get_trace_parsers(self) -> list[type]:
        return [FakeTraceParser]

    @hookimpl
    def tracecheck_get_event_providers(self) -> list[type]:
        return [FakeEventProvider]


class DuplicateSource:
    @hookimpl
    def tracecheck_get_trace_sources(self) -> list[type]:
        return [FilesystemTraceSource]


@pytest.fixture
def manager() -> PluginManager:
    plugins = PluginManager()
    plugins.register_builtin_plugins()
    return plugins


class TestRegistration:
    def test_builtins(self, manager: PluginManager) -> None:
        assert manager.get_trace_source_by_name("filesystem") is FilesystemTraceSource
        assert manager.get_event_provider_by_name("beryx") is BeryxEventProvider
        assert manager.get_trace_parser_by_name("fake") is None

    def test_register_additional_plugins(self, manager: PluginManager) -> None:
        manager.register(FakePlugins())

        assert manager.get_trace_source_by_name("memory") is FakeTraceSource
        assert manager.get_trace_parser_by_name("fake") is FakeTraceParser

    def test_duplicate_name_rejected(self, manager: PluginManager) -> None:
        with pytest.raises(SetupError, match="Duplicate trace source plugin name: 'filesystem'"):
            manager.register(DuplicateSource())

    def test_duplicate_leaves_caches_untouched(self, manager: PluginManager) -> None:
        with pytest.raises(SetupError):
            manager.register(DuplicateSource())

        assert manager.get_event_provider_by_name("beryx") is BeryxEventProvider


class TestInstantiation:
    def test_trace_source_receives_options(self, manager: PluginManager, tmp_path: Path) -> None:
        source = manager.create_trace_source(TraceSourceSettings(plugin="filesystem", options={"directory": str(tmp_path)}))

        assert isinstance(source, FilesystemTraceSource)
        assert source.path_for(1).parent == tmp_path

    def test_unknown_source(self, manager: PluginManager) -> None:
        with pytest.raises(SetupError, match="Unknown trace source plugin 'bigquery'. Available: filesystem"):
            manager.create_trace_source(TraceSourceSettings(plugin="bigquery"))

    def test_no_parser_configured(self, manager: PluginManager) -> None:
        assert manager.create_trace_parser(TraceParserSettings()) is None

    def test_unknown_parser(self, manager: PluginManager) -> None:
        with pytest.raises(SetupError, match="Available: none"):
            manager.create_trace_parser(TraceParserSettings(plugin="rosetta"))

    def test_parser_receives_options(self, manager: PluginManager) -> None:
        manager.register(FakePlugins())

        parser = manager.create_trace_parser(TraceParserSettings(plugin="fake", options={"network": "calibration"}))

        assert isinstance(parser, FakeTraceParser)
        assert parser.options == {"network": "calibration"}

    def test_event_provider_token_override(self, manager: PluginManager) -> None:
        manager.register(FakePlugins())
        settings = EventProviderSettings(plugin="fake", url="https://beryx.test", token="from-settings")

        provider = manager.create_event_provider(settings, token="from-cli")

        assert isinstance(provider, FakeEventProvider)
        assert provider.options == {"url": "https://beryx.test", "token": "from-cli", "timeout_seconds": 30.0}

    def test_event_provider_settings_token(self, manager: PluginManager) -> None:
        manager.register(FakePlugins())

        provider = manager.create_event_provider(EventProviderSettings(plugin="fake", token="from-settings"))

        assert isinstance(provider, FakeEventProvider)
        assert provider.options["token"] == "from-settings"
