#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py

    Or with Gunicorn:
    gunicorn skupulse.main:app -c gunicorn.conf.py

Host and port come from API_HOST / API_PORT unless given on the command line.
"""

import argparse
import os
import subprocess

from skupulse.config.settings import get_settings


def run_dev_server(host: str, port: int):
    """Run development server with auto-reload."""
    import uvicorn

    uvicorn.run(
        "skupulse.main:app",
        host=host,
        port=port,
        reload=True,
        reload_dirs=["skupulse"],
        log_level="debug",
        access_log=True,
    )


def run_prod_server(host: str, port: int, workers: int):
    """Run production server with Uvicorn directly."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "skupulse.main:app",
        host=host,
        port=port,
        workers=workers,
        log_level=settings.monitoring.log_level.lower(),
        access_log=True,
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn():
    """Run with Gunicorn."""
    subprocess.run(["gunicorn", "skupulse.main:app", "-c", "gunicorn.conf.py"], check=True)


if __name__ == "__main__":
    settings = get_settings()

    parser = argparse.ArgumentParser(description=f"{settings.app_name} API server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn")
    parser.add_argument("--host", default=settings.api_host, help=f"Interface to bind (default: {settings.api_host})")
    parser.add_argument("--port", type=int, default=settings.api_port, help=f"Port to run on (default: {settings.api_port})")
    parser.add_argument("--workers", type=int, default=int(os.getenv("WORKERS", 2)), help="Uvicorn worker processes")

    args = parser.parse_args()

    if args.dev:
        run_dev_server(args.host, args.port)
    elif args.gunicorn:
        run_gunicorn()
    else:
        run_prod_server(args.host, args.port, args.workers)
