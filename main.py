"""Feissari dev launcher. Starts the API server in watch mode."""

import argparse
import logging
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "3001")


def main():
    parser = argparse.ArgumentParser(description="Feissari dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--seed", action="store_true",
                        help="Write the built-in salesperson catalog before starting")
    parser.add_argument("--seed-only", action="store_true",
                        help="Write the catalog and exit without starting the server")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"),
                        help="Root log level (default: INFO)")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    data_dir = args.data_dir or Path(os.getenv("DATA_DIR", str(ROOT / "data")))

    if args.seed or args.seed_only:
        from feissari.seed import seed_characters
        from feissari.storage import Storage
        catalog = seed_characters(Storage(data_dir))
        print(f"Seeded {len(catalog)} characters into {data_dir}")
        if args.seed_only:
            return

    # Build env for the subprocess so the server picks up the same data dir
    env = os.environ.copy()
    env["DATA_DIR"] = str(data_dir.resolve())
    env["LOG_LEVEL"] = args.log_level

    procs: list[subprocess.Popen] = []

    def shutdown(*_):
        print("\nShutting down...")
        for p in procs:
            p.terminate()
        for p in procs:
            p.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    procs.append(subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "feissari.app:create_app", "--factory",
         "--reload", "--host", HOST, "--port", BACKEND_PORT,
         "--log-level", args.log_level.lower()],
        cwd=ROOT, env=env,
    ))

    for p in procs:
        p.wait()


if __name__ == "__main__":
    main()
