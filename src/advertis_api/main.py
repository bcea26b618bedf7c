import uvicorn

from .settings import get_settings


def main():
    """Run the Advertis API server."""
    settings = get_settings()

    uvicorn.run(
        "advertis_api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="debug" if settings.debug else settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
