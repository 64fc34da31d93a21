import pytest

from minish import Interpreter


@pytest.fixture
def interpreter() -> Interpreter:
    return Interpreter()
