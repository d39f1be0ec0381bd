import pytest

from tests._support import Harness, make_harness


@pytest.fixture
def harness() -> Harness:
    return make_harness()
