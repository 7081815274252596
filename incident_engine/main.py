"""
ASGI entry point: ``uvicorn incident_engine.main:app``.
"""

from typing import Optional

from .api import app  # noqa: F401
from .config import get_settings


def run(host: Optional[str] = None, port: Optional[int] = None, reload: bool = False) -> None:
    """Serve the API with the configured bind address and worker count."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "incident_engine.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        workers=1 if reload else settings.api_workers,
    )


if __name__ == "__main__":
    run(reload=get_settings().debug)
