import jax
import pytest

from mixjax import debug_level

jax.config.update("jax_platform_name", "cpu")


@pytest.fixture(autouse=True)
def full_checks():
    """Run every test with all precondition checks enabled."""
    with debug_level(2):
        yield
