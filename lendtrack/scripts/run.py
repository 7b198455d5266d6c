"""Main entry point for the Lendtrack API server."""


def main() -> None:
    """Run the Lendtrack application with uvicorn."""
    import os

    import uvicorn

    from lendtrack.config import config

    port = int(os.getenv("BIND_PORT", str(config.PORT)))
    host = os.getenv("BIND_HOST", "127.0.0.1")

    uvicorn.run(
        "lendtrack.main:app",
        host=host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
