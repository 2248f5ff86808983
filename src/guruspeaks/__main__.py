import uvicorn

from guruspeaks.settings import get_settings


def main() -> None:
    """Serve the app with uvicorn using host/port from settings."""
    settings = get_settings()
    uvicorn.run(
        "guruspeaks.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
