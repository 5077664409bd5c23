#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py

    Or with Gunicorn:
    gunicorn sf_performance.main:app -c gunicorn.conf.py

Host, port and log level come from API_HOST, API_PORT and LOG_LEVEL.
Uploads are serialised inside one worker process, so the default is a
single worker; set WORKERS to scale reads.
"""

import argparse
import os
import subprocess
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

APP = "sf_performance.main:app"


def run_dev_server(host: str, port: int):
    """Run development server with auto-reload."""
    import uvicorn

    uvicorn.run(
        APP,
        host=host,
        port=port,
        reload=True,
        reload_dirs=["sf_performance"],
        log_level="debug",
        access_log=True,
    )


def run_prod_server(host: str, port: int, log_level: str):
    """Run production server with Uvicorn directly."""
    import uvicorn

    uvicorn.run(
        APP,
        host=host,
        port=port,
        workers=int(os.getenv("WORKERS", 1)),
        log_level=log_level,
        access_log=True,
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn(host: str, port: int):
    """Run with Gunicorn."""
    env = dict(os.environ, BIND=f"{host}:{port}")
    subprocess.run(["gunicorn", APP, "-c", "gunicorn.conf.py"], env=env, check=True)


if __name__ == "__main__":
    from sf_performance.config import get_settings

    settings = get_settings()

    parser = argparse.ArgumentParser(description="Sales-Force Performance API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn")
    parser.add_argument("--host", default=settings.api_host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Port to run on")
    args = parser.parse_args()

    if args.dev:
        print("Starting development server...")
        run_dev_server(args.host, args.port)
    elif args.gunicorn:
        print("Starting production server with Gunicorn...")
        run_gunicorn(args.host, args.port)
    else:
        print(f"Starting production server on {args.host}:{args.port}...")
        run_prod_server(args.host, args.port, settings.monitoring.log_level.lower())
