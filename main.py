"""Meme Coin Exchange - Main entry point."""
import uvicorn
from meme_exchange.core.config import get_settings

settings = get_settings()


def main():
    """Run the FastAPI application."""
    uvicorn.run(
        "meme_exchange.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False
    )


if __name__ == "__main__":
    main()
