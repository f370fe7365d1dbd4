"""Pytest configuration and shared fixtures."""

import pytest

from src.helpers.retry import RetryConfig

from fakes import FakeLedgerClient, StubMevMonitor, StubReorgMonitor


@pytest.fixture
def no_delay_retry() -> RetryConfig:
    """Retry config that retries without sleeping."""
    return RetryConfig(max_retries=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def ledger() -> FakeLedgerClient:
    return FakeLedgerClient()


@pytest.fixture
def calm_mev() -> StubMevMonitor:
    return StubMevMonitor(score=10)


@pytest.fixture
def no_reorg() -> StubReorgMonitor:
    return StubReorgMonitor()
