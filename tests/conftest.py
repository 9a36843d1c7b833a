# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings

from tests.fixtures import FakeChainStateReader, FakeTraceParser, FakeTraceSource
from tracecheck.core.checkpoint import CheckpointDB
from tracecheck.core.config import TraceCheckSettings
from tracecheck.core.context import CancellationToken, CheckContext
from tracecheck.engine.pipeline import TracePipeline

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Shared fixtures
# =============================================================================


@pytest.fixture
def trace_settings() -> TraceCheckSettings:
    return TraceCheckSettings()


@pytest.fixture
def cancellation() -> CancellationToken:
    return CancellationToken()


@pytest.fixture
def context(trace_settings: TraceCheckSettings, cancellation: CancellationToken) -> CheckContext:
    return CheckContext(settings=trace_settings, cancellation=cancellation)


@pytest.fixture
def db() -> Iterator[CheckpointDB]:
    """In-memory checkpoint database, closed after the test."""
    database = CheckpointDB.in_memory()
    yield database
    database.close()


@pytest.fixture
def reader() -> FakeChainStateReader:
    return FakeChainStateReader()


@pytest.fixture
def source() -> FakeTraceSource:
    return FakeTraceSource()


@pytest.fixture
def parser() -> FakeTraceParser:
    return FakeTraceParser()


@pytest.fixture
def pipeline(
    context: CheckContext,
    source: FakeTraceSource,
    reader: FakeChainStateReader,
    parser: FakeTraceParser,
) -> TracePipeline:
    return TracePipeline(context, source, reader, parser)
