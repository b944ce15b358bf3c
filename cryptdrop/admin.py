"""Administrative client that checks in with the server's local control socket."""

from __future__ import annotations

import argparse
import os
import socket
import sys

ADMIN_SOCKET_PATH = "/tmp/pcd_admin_socket"


def connect(path: str | os.PathLike[str] = ADMIN_SOCKET_PATH) -> str:
    """Connect to the admin socket at ``path`` and hang up; return the path reached.

    Raises ``OSError`` when the server cannot be reached.
    """
    target = os.fspath(path)
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.connect(target)
    return target


def main(argv: list[str] | None = None) -> int:
    """Ping the server's admin socket, which makes it list the connected clients."""
    parser = argparse.ArgumentParser(prog="cryptdrop-admin", description="Ping the server's admin socket.")
    parser.add_argument("--socket", default=ADMIN_SOCKET_PATH, help="path of the admin socket")
    args = parser.parse_args(argv)
    try:
        reached = connect(args.socket)
    except OSError as exc:
        print(f"Client: connect error: {exc}", file=sys.stderr)
        return 1
    print(f"Client: connected to server at {reached}")
    return 0