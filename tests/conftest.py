"""Shared test configuration and fixtures."""

import os
from collections.abc import Iterator
from unittest.mock import patch

import pytest

import market_resolver.core.config as config_module

_ISOLATED_ENV_VARS = (
    "RESOLVER_PRIVATE_KEY",
    "TAVILY_API_KEY",
    "ETHERSCAN_API_KEY",
    "LEDGER_RPC_URL",
    "LEDGER_CONTRACT_ADDRESS",
    "ETHEREUM_RPC_URL",
)


@pytest.fixture(autouse=True)
def _isolate_environment() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    """Hide secrets from the developer's shell and reset the config singleton.

    The default ``settings.yaml`` reads signing keys and endpoints from the
    environment. Clearing them keeps every test on the packaged defaults,
    and resetting the singleton stops one test's loader leaking into the
    next.
    """
    cleared = {k: v for k, v in os.environ.items() if k not in _ISOLATED_ENV_VARS}
    with patch.dict(os.environ, cleared, clear=True):
        config_module._config = None  # pyright: ignore[reportPrivateUsage]
        yield
        config_module._config = None  # pyright: ignore[reportPrivateUsage]
