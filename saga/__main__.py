"""Entry point for `python -m saga`."""

import uvicorn

from saga.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "saga.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
