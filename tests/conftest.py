"""
Shared fixtures for the ShieldModel tests.
"""

import pytest

from shieldmodel import Environment, ShieldConfig, ShieldFactory


@pytest.fixture
def config() -> ShieldConfig:
    return ShieldConfig.for_environment(Environment.TESTING)


@pytest.fixture
def factory(config) -> ShieldFactory:
    """A factory with empty caches, isolated from the process-wide one."""
    return ShieldFactory(config)
