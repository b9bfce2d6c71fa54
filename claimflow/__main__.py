"""Run the API with uvicorn: ``python -m claimflow`` or the ``claimflow`` script."""

import uvicorn

from claimflow.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "claimflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
