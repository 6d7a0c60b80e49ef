"""FastAPI dependency injection: the service container."""

from filplus.bootstrap import Container, build_container
from filplus.config.settings import get_settings

_container: Container | None = None


def get_container() -> Container:
    """Return singleton container built from settings."""
    global _container
    if _container is None:
        _container = build_container(get_settings())
    return _container


async def close_container() -> None:
    global _container
    if _container is not None:
        await _container.close()
    _container = None

