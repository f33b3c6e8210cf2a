#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py

    Or with Gunicorn:
    gunicorn src.main:app -c gunicorn.conf.py
"""

import argparse
import os
import subprocess
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from src.config import get_settings


def run_dev_server(port: int):
    """Run development server with auto-reload."""
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        reload_dirs=["src"],
        log_level="debug",
        access_log=True,
    )


def run_prod_server(port: int):
    """Run production server with Uvicorn directly."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=port,
        workers=settings.api_workers,
        log_level=settings.monitoring.log_level.lower(),
        access_log=True,
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn():
    """Run with Gunicorn (recommended for production)."""
    subprocess.run(["gunicorn", "src.main:app", "-c", "gunicorn.conf.py"], check=False)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Product Catalog API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn (production)")
    parser.add_argument("--port", type=int, default=None, help="Port to run on (default: PORT or 3000)")

    args = parser.parse_args()

    port = args.port or get_settings().api_port
    os.environ["PORT"] = str(port)

    if args.dev:
        run_dev_server(port)
    elif args.gunicorn:
        run_gunicorn()
    else:
        run_prod_server(port)
