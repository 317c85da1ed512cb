"""
Command line entry point: run the API server or hash the shared password.

    python -m dropit serve --port 8000
    python -m dropit hash-password
"""

from __future__ import annotations

import argparse
import getpass
import sys

import uvicorn

from dropit.security import hash_password


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="dropit", description=__doc__.splitlines()[1])
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    hasher = subparsers.add_parser(
        "hash-password", help="Print a bcrypt hash for APP_PASSWORD_HASH"
    )
    hasher.add_argument("password", nargs="?", help="Prompted for when omitted")

    args = parser.parse_args(argv)

    if args.command == "hash-password":
        password = args.password or getpass.getpass("Password: ")
        if not password:
            parser.error("password must not be empty")
        print(hash_password(password))
        return 0

    uvicorn.run(
        "dropit.app:app",
        host=getattr(args, "host", "127.0.0.1"),
        port=getattr(args, "port", 8000),
        reload=getattr(args, "reload", False),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
