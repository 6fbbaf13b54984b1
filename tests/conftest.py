from collections.abc import Iterator

import pytest

from fastcheck.check.parameters import reset_configure_global


@pytest.fixture(autouse=True)
def reset_global_parameters() -> Iterator[None]:
    """Global parameters never leak from one test to another."""
    reset_configure_global()
    yield
    reset_configure_global()
