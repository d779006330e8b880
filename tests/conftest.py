import pytest


@pytest.fixture
def anyio_backend() -> str:
    # Controllers schedule work on the running asyncio loop
    return "asyncio"
