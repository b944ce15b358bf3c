"""Interactive client that uploads files for encryption and downloads the results."""

from __future__ import annotations

import argparse
import socket
import sys
import time
import uuid
from functools import partial

from cryptdrop.packet import DOWNLOAD, FIRST, HEADER_SIZE, KEY_SIZE, LAST, MIDDLE, UPLOAD, Header

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8090
BUFFER_SIZE = 1024
CHUNK_SIZE = BUFFER_SIZE - HEADER_SIZE
DEFAULT_PACE = 0.01

_NIL_UUID = uuid.UUID(int=0)


class Client:
    """A connection to the job server, remembering the user and last job it was given."""

    def __init__(
        self,
        sock: socket.socket,
        *,
        pace: float = DEFAULT_PACE,
        idle_timeout: float | None = None,
    ) -> None:
        self.sock = sock
        self.pace = pace
        self.idle_timeout = idle_timeout
        self.user_uuid: uuid.UUID = _NIL_UUID
        self.last_job_uuid: uuid.UUID = _NIL_UUID

    @classmethod
    def connect(
        cls,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        **options: float | None,
    ) -> Client:
        """Open a TCP connection to the server at ``host``:``port``."""
        sock = socket.create_connection((host, port))
        return cls(sock, **options)

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        """Tell whether the connection has been closed."""
        return self.sock.fileno() == -1

    def close(self) -> None:
        """Close the connection to the server."""
        self.sock.close()

    def _recv_exact(self, size: int) -> bytes:
        parts = []
        remaining = size
        while remaining:
            chunk = self.sock.recv(remaining)
            if not chunk:
                raise ConnectionError("server closed the connection before replying")
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    def _send_packet(self, header: Header, body: bytes = b"") -> None:
        packet = (header.pack(HEADER_SIZE) + body).ljust(BUFFER_SIZE, b"\0")
        self.sock.sendall(packet)

    def upload_file(self, path, header: Header) -> Header:
        """Send the file at ``path`` as a job described by ``header``.

        Returns the header the server assigned, which carries the user and job UUIDs.
        """
        with open(path, "rb") as source:
            self._send_packet(header)
            current = Header.unpack(self._recv_exact(BUFFER_SIZE))
            self.user_uuid = current.user_uuid
            self.last_job_uuid = current.job_uuid
            assigned = Header(**vars(current))

            for chunk in iter(partial(source.read, CHUNK_SIZE), b""):
                current.message_len = len(chunk)
                current.first_middle_last = MIDDLE
                self._send_packet(current, chunk)
                if self.pace > 0:
                    time.sleep(self.pace)

        current.first_middle_last = LAST
        current.message_len = 0
        self._send_packet(current)
        return assigned

    def download_file(self, path, header: Header) -> int:
        """Request a result with ``header`` and write everything received to ``path``.

        Reading ends when the server closes the connection or, if ``idle_timeout``
        is set, when no data arrives for that long. Returns the number of bytes written.
        """
        self.sock.sendall(header.pack(BUFFER_SIZE))
        written = 0
        previous_timeout = self.sock.gettimeout()
        if self.idle_timeout is not None:
            self.sock.settimeout(self.idle_timeout)
        try:
            with open(path, "wb") as target:
                while True:
                    try:
                        chunk = self.sock.recv(BUFFER_SIZE)
                    except socket.timeout:
                        break
                    if not chunk:
                        break
                    target.write(chunk)
                    written += len(chunk)
        finally:
            if self.idle_timeout is not None and not self.closed:
                self.sock.settimeout(previous_timeout)
        return written


def _read_digit(prompt: str) -> int:
    text = input(prompt).strip()
    if len(text) == 1 and text.isdigit():
        return int(text)
    return -1


def _collect_header(up_down: int) -> Header:
    header = Header(up_down=up_down)
    print("Select Algorithm:")
    print("  0. AES")
    print("  1. CHACHA20")
    header.algorithm = _read_digit("> ")
    raw_key = input(f"Enter encryption/decryption key (max {KEY_SIZE - 1} chars): ")
    key_bytes = raw_key.encode("utf-8")[: KEY_SIZE - 1]
    header.key = key_bytes.decode("utf-8", "ignore")
    header.key_len = len(header.key.encode("utf-8"))
    print("Select Mode:")
    print("  0. Encrypt")
    print("  1. Decrypt")
    header.enc_dec = _read_digit("> ")
    header.first_middle_last = FIRST
    header.message_len = 0
    return header


def _handle_upload(client: Client) -> None:
    path = input("Enter path to file to upload: ").strip()
    header = _collect_header(UPLOAD)
    client.upload_file(path, header)
    input("Upload complete. Press Enter to return.")


def _handle_download(client: Client) -> None:
    path = input("Enter path to save the download: ").strip()
    header = Header(
        up_down=DOWNLOAD,
        first_middle_last=FIRST,
        user_uuid=client.user_uuid,
        job_uuid=client.last_job_uuid,
    )
    count = client.download_file(path, header)
    input(f"Download complete ({count} bytes). Press Enter to return.")


def run_interface(client: Client) -> None:
    """Show the menu and serve the user's choices until they exit; closes ``client``."""
    try:
        while True:
            print("File Transfer Client")
            print("  1. Upload File")
            print("  2. Download File")
            print("  3. Exit")
            choice = input("Select an option: ").strip()
            if choice == "1":
                _handle_upload(client)
            elif choice == "2":
                _handle_download(client)
            elif choice == "3":
                return
            else:
                print("Invalid choice.")
    except EOFError:
        return
    finally:
        client.close()


def main(argv: list[str] | None = None) -> int:
    """Connect to the server and run the interactive menu."""
    parser = argparse.ArgumentParser(prog="cryptdrop-client", description="Upload and download encryption jobs.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    try:
        client = Client.connect(args.host, args.port)
    except OSError as exc:
        print(f"Connection failed: {exc}", file=sys.stderr)
        return 1
    try:
        run_interface(client)
    except OSError as exc:
        print(f"Transfer failed: {exc}", file=sys.stderr)
        return 1
    return 0