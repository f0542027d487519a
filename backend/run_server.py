#!/usr/bin/env python3
"""
Launch script for the Lap Time Tracker backend.

Usage:
    python run_server.py [db_path] [--port PORT] [--host HOST] [--udp-port PORT]

Examples:
    python run_server.py                       # Use default ./data/lap_times.db
    python run_server.py /path/to/laps.db      # Use custom database
    python run_server.py --udp-port 6789       # Listen for telemetry on 6789
    python run_server.py --no-listener         # HTTP API only
"""

import argparse
import os
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from lapwatch.config import (
    DB_PATH_ENV,
    DEFAULT_DB_PATH,
    DEFAULT_STORE_TIMEOUT_S,
    DEFAULT_UDP_HOST,
    DEFAULT_UDP_PORT,
    LISTENER_ENV,
    SESSION_RESET_ENV,
    SIM_ENV,
    STORE_TIMEOUT_ENV,
    UDP_HOST_ENV,
    UDP_PORT_ENV,
)
from lapwatch.models.lap import DEFAULT_SIM


def main():
    parser = argparse.ArgumentParser(description="Lap Time Tracker Server")
    parser.add_argument(
        "db_path",
        nargs="?",
        default=str(DEFAULT_DB_PATH),
        help=f"Path to the SQLite lap database (default: {DEFAULT_DB_PATH})"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=3000,
        help="HTTP port to run server on (default: 3000)"
    )
    parser.add_argument(
        "--host", "-H",
        default="127.0.0.1",
        help="Host to bind the HTTP server to (default: 127.0.0.1, use 0.0.0.0 for all interfaces)"
    )
    parser.add_argument(
        "--udp-host",
        default=DEFAULT_UDP_HOST,
        help=f"Interface for simulator telemetry (default: {DEFAULT_UDP_HOST})"
    )
    parser.add_argument(
        "--udp-port", "-u",
        type=int,
        default=DEFAULT_UDP_PORT,
        help=f"UDP port for simulator telemetry (default: {DEFAULT_UDP_PORT})"
    )
    parser.add_argument(
        "--store-timeout",
        type=float,
        default=DEFAULT_STORE_TIMEOUT_S,
        help=f"Seconds to wait for the lap database per lap (default: {DEFAULT_STORE_TIMEOUT_S})"
    )
    parser.add_argument(
        "--sim",
        default=DEFAULT_SIM,
        help=f"Simulator tag stored with each lap (default: {DEFAULT_SIM})"
    )
    parser.add_argument(
        "--no-listener",
        action="store_true",
        help="Do not start the UDP telemetry listener"
    )
    parser.add_argument(
        "--session-reset",
        action="store_true",
        help="Reset lap detection when the track changes or the lap counter goes back"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Run in debug mode"
    )

    args = parser.parse_args()

    db_path = Path(args.db_path)

    print(f"Lap Time Tracker")
    print(f"=" * 40)
    print(f"Database: {db_path.absolute()}")
    print(f"Server: http://{args.host}:{args.port}")
    if args.no_listener:
        print("Telemetry: disabled")
    else:
        print(f"Telemetry: udp://{args.udp_host}:{args.udp_port}")
    print(f"=" * 40)

    # Configure the FastAPI lifespan
    os.environ[DB_PATH_ENV] = str(db_path)
    os.environ[UDP_HOST_ENV] = args.udp_host
    os.environ[UDP_PORT_ENV] = str(args.udp_port)
    os.environ[STORE_TIMEOUT_ENV] = str(args.store_timeout)
    os.environ[SIM_ENV] = args.sim
    os.environ[LISTENER_ENV] = "0" if args.no_listener else "1"
    os.environ[SESSION_RESET_ENV] = "1" if args.session_reset else "0"

    print("\nAPI Endpoints:")
    print("  GET    /                            - Health check")
    print("  GET    /health                      - Detailed health")
    print("  GET    /api/lap-times               - Recent laps")
    print("  POST   /api/lap-times               - Add a lap")
    print("  GET    /api/lap-times/best          - Fastest laps (?track=&car=)")
    print("  GET    /api/lap-times/personal-best - Personal best (?driver_name=&track=&car=)")
    print("  DELETE /api/lap-times/{id}          - Delete a lap")
    print("  GET    /api/stats                   - Statistics")
    print("  GET    /api/status                  - Live session status")
    print("\nStart the simulator and begin driving to see lap times!")
    print("\nStarting server...")

    import uvicorn

    uvicorn.run(
        "lapwatch.main:app",
        host=args.host,
        port=args.port,
        reload=args.debug,
        log_level="debug" if args.debug else "info",
    )


if __name__ == "__main__":
    main()
