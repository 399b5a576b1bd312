"""
Hotspot Payment Bridge — Uvicorn Launcher
Run this file to start the server.

Usage:
    python run.py
    python run.py --port 8000
    python run.py --reload
"""
import argparse
import sys

import uvicorn
from pydantic import ValidationError


def check_settings():
    """Refuse to start when required configuration is missing."""
    from app.config import get_settings

    try:
        return get_settings()
    except ValidationError as exc:
        missing = sorted({str(err["loc"][0]) for err in exc.errors() if err["type"] == "missing"})
        if missing:
            print(f"CRITICAL ERROR: missing required environment variables: {', '.join(missing)}")
        else:
            print(f"CRITICAL ERROR: invalid configuration:\n{exc}")
        sys.exit(1)


def main():
    parser = argparse.ArgumentParser(description="Hotspot Payment Bridge Server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable hot reload for development")
    parser.add_argument("--workers", type=int, default=1, help="Number of workers (default: 1)")

    args = parser.parse_args()
    settings = check_settings()

    print(f"""
    ========================================================
      {settings.APP_NAME} v{settings.APP_VERSION}
      API:          http://{args.host}:{args.port}
      Environment:  {settings.ENVIRONMENT}
      Callback URL: {settings.MPESA_CALLBACK_URL}
    ========================================================
    """)

    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=args.workers,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
