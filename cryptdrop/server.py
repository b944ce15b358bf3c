"""Multi-threaded job server: receives files over TCP, encrypts them and serves the results."""

from __future__ import annotations

import argparse
import fnmatch
import os
import selectors
import socket
import sys
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import BinaryIO

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from cryptdrop.cyphers import CipherError, run_symmetric
from cryptdrop.jobqueue import JobQueue
from cryptdrop.logfile import Logger
from cryptdrop.packet import FIRST, HEADER_SIZE, LAST, MIDDLE, UPLOAD, Header

_POLL_INTERVAL = 0.2
_JOIN_TIMEOUT = 5.0


@dataclass
class ServerConfig:
    """Addresses, folders and limits used by :class:`Server`."""

    host: str = ""
    port: int = 8090
    admin_socket: Path = Path("/tmp/pcd_admin_socket")
    log_file: Path = Path("/tmp/pcd_log_file")
    processing_dir: Path = Path("processing")
    incomplete_dir: Path = Path("incomplete")
    outgoing_dir: Path = Path("outgoing")
    max_clients: int = 100
    buffer_size: int = 1024
    settle_delay: float = 1.0

    def __post_init__(self) -> None:
        self.admin_socket = Path(self.admin_socket)
        self.log_file = Path(self.log_file)
        self.processing_dir = Path(self.processing_dir)
        self.incomplete_dir = Path(self.incomplete_dir)
        self.outgoing_dir = Path(self.outgoing_dir)
        if self.buffer_size < HEADER_SIZE:
            raise ValueError(f"buffer_size must be at least {HEADER_SIZE}")


@dataclass
class _Session:
    user_uuid: uuid.UUID = field(default_factory=uuid.uuid4)
    job_file: BinaryIO | None = None

    def close_job(self) -> None:
        if self.job_file is not None:
            self.job_file.close()
            self.job_file = None


def _job_name(user: uuid.UUID, job: uuid.UUID) -> str:
    return f"{user}_{job}"


class _ProcessingHandler(FileSystemEventHandler):
    """Queues the names of files that appear in the processing folder."""

    def __init__(self, queue: JobQueue, folder: Path) -> None:
        super().__init__()
        self._queue = queue
        self._folder = os.path.abspath(folder)

    def _enqueue(self, path: str | bytes) -> None:
        name = os.path.basename(os.fsdecode(path))
        print(f"New thing created: {name}")
        self._queue.push(name)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._enqueue(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        destination = os.fsdecode(event.dest_path)
        if os.path.dirname(os.path.abspath(destination)) == self._folder:
            self._enqueue(destination)


class Server:
    """Accepts upload and download jobs, encrypts uploads and streams results back."""

    def __init__(self, config: ServerConfig | None = None) -> None:
        self.config = config or ServerConfig()
        self.logger = Logger(self.config.log_file)
        self.queue = JobQueue()
        self._lock = threading.Lock()
        self._sessions: dict[socket.socket, _Session] = {}
        self._selector: selectors.BaseSelector | None = None
        self._client_listener: socket.socket | None = None
        self._admin_listener: socket.socket | None = None
        self._stopping = threading.Event()
        self._watching = threading.Event()
        self._threads: list[threading.Thread] = []

    def __enter__(self) -> Server:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def address(self) -> tuple[str, int] | None:
        """The address the client listener is bound to, once listening."""
        if self._client_listener is None:
            return None
        return self._client_listener.getsockname()

    def start(self) -> None:
        """Bind both listeners and start the worker threads."""
        if self._threads:
            raise RuntimeError("server already started")
        self._stopping.clear()
        self._watching.clear()
        for folder in (self.config.processing_dir, self.config.incomplete_dir, self.config.outgoing_dir):
            folder.mkdir(parents=True, exist_ok=True)
        self.logger.log("Start")
        self.queue.clear()
        self.logger.log("Initialised queue")
        self._listen_admin()
        try:
            self._listen_clients()
        except OSError:
            self._close_listeners()
            raise
        workers: list[Callable[[], None]] = [
            self.serve_admin,
            self.serve_clients,
            self.run_processing,
            self.watch_processing,
        ]
        for worker in workers:
            thread = threading.Thread(target=worker, name=worker.__name__, daemon=True)
            thread.start()
            self._threads.append(thread)
        if not self._watching.wait(_JOIN_TIMEOUT):
            self.stop()
            raise RuntimeError("could not watch the processing folder")

    def stop(self) -> None:
        """Stop the worker threads and release sockets."""
        self._stopping.set()
        for thread in self._threads:
            thread.join(_JOIN_TIMEOUT)
        self._threads.clear()
        self._close_listeners()
        self._watching.clear()

    def _listen_clients(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.max_clients)
        except OSError:
            sock.close()
            raise
        self._client_listener = sock
        return sock

    def _listen_admin(self) -> socket.socket:
        path = self.config.admin_socket
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(os.fspath(path))
            sock.listen(1)
        except OSError:
            sock.close()
            raise
        sock.settimeout(_POLL_INTERVAL)
        self._admin_listener = sock
        return sock

    def _close_listeners(self) -> None:
        if self._client_listener is not None:
            self._client_listener.close()
            self._client_listener = None
        if self._admin_listener is not None:
            self._admin_listener.close()
            self._admin_listener = None
            try:
                os.unlink(self.config.admin_socket)
            except FileNotFoundError:
                pass

    def serve_admin(self) -> None:
        """Answer each admin connection by listing the connected client descriptors."""
        listener = self._admin_listener or self._listen_admin()
        while not self._stopping.is_set():
            try:
                admin, _ = listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._stopping.is_set():
                    break
                print(f"Couldn't accept admin: {exc}", file=sys.stderr)
                continue
            print("found admin client")
            with self._lock:
                descriptors = [client.fileno() for client in self._sessions]
            for descriptor in descriptors:
                print(f"Client FD: {descriptor}")
            admin.close()

    def serve_clients(self) -> None:
        """Accept clients and dispatch their packets until the server stops."""
        listener = self._client_listener or self._listen_clients()
        with selectors.DefaultSelector() as selector:
            self._selector = selector
            selector.register(listener, selectors.EVENT_READ)
            try:
                while not self._stopping.is_set():
                    for key, _ in selector.select(timeout=_POLL_INTERVAL):
                        if key.fileobj is listener:
                            self._accept(listener, selector)
                        else:
                            self._receive(key.fileobj)
            finally:
                self._selector = None
                with self._lock:
                    sessions = list(self._sessions.items())
                    self._sessions.clear()
                for client, session in sessions:
                    session.close_job()
                    client.close()

    def _accept(self, listener: socket.socket, selector: selectors.BaseSelector) -> None:
        try:
            client, _ = listener.accept()
        except OSError as exc:
            print(f"accept failed: {exc}", file=sys.stderr)
            return
        client.setblocking(True)
        with self._lock:
            if len(self._sessions) >= self.config.max_clients:
                print("Too many clients")
                client.close()
                return
            self._sessions[client] = _Session()
        selector.register(client, selectors.EVENT_READ)

    def _receive(self, client: socket.socket) -> None:
        try:
            data = client.recv(self.config.buffer_size, socket.MSG_WAITALL)
        except OSError:
            data = b""
        if not data:
            self.drop_client(client)
            return
        try:
            self.handle_packet(client, data)
        except (OSError, ValueError) as exc:
            print(f"Dropping client after bad packet: {exc}", file=sys.stderr)
            self.drop_client(client)

    def _session(self, client: socket.socket) -> _Session:
        with self._lock:
            session = self._sessions.get(client)
            if session is None:
                session = self._sessions[client] = _Session()
            return session

    def handle_packet(self, client: socket.socket, data: bytes) -> None:
        """Act on one packet received from ``client``."""
        header = Header.unpack(data)
        print(header.describe(), end="")
        session = self._session(client)
        if header.up_down == UPLOAD:
            self._handle_upload(client, session, header, data)
        elif header.first_middle_last == FIRST:
            self._handle_download(client, header)

    def _handle_upload(self, client: socket.socket, session: _Session, header: Header, data: bytes) -> None:
        stage = header.first_middle_last
        if stage == FIRST:
            header.user_uuid = session.user_uuid
            header.job_uuid = uuid.uuid4()
            client.sendall(header.pack(self.config.buffer_size))
            session.close_job()
            path = self.config.incomplete_dir / _job_name(header.user_uuid, header.job_uuid)
            session.job_file = open(path, "ab", buffering=0)
            session.job_file.write(header.pack())
        elif stage == MIDDLE:
            if session.job_file is None:
                raise ValueError("no upload in progress for this client")
            body = data[HEADER_SIZE:HEADER_SIZE + header.message_len]
            if header.message_len <= 0 or len(body) < header.message_len:
                raise ValueError(f"invalid message length {header.message_len}")
            session.job_file.write(body)
        elif stage == LAST:
            session.close_job()
            name = _job_name(header.user_uuid, header.job_uuid)
            incomplete = self.config.incomplete_dir / name
            processing = self.config.processing_dir / name
            print(f"incomplete path: {incomplete}")
            print(f"processing path: {processing}")
            os.replace(incomplete, processing)
        else:
            raise ValueError(f"unknown packet position: {stage}")

    def _handle_download(self, client: socket.socket, header: Header) -> None:
        path = self.config.processing_dir / _job_name(header.user_uuid, uuid.uuid4())
        print(f"file path: {path}")
        header.client_socket = client.fileno()
        with open(path, "ab") as stream:
            stream.write(header.pack(self.config.buffer_size))

    def drop_client(self, client: socket.socket) -> list[str]:
        """Disconnect ``client`` and delete its results; return the names removed."""
        with self._lock:
            session = self._sessions.pop(client, None)
        selector = self._selector
        if selector is not None:
            try:
                selector.unregister(client)
            except (KeyError, ValueError):
                pass
        client.close()
        if session is None:
            return []
        session.close_job()
        pattern = f"{session.user_uuid}*"
        removed = []
        for entry in sorted(os.listdir(self.config.outgoing_dir)):
            if not fnmatch.fnmatchcase(entry, pattern):
                continue
            try:
                (self.config.outgoing_dir / entry).unlink()
            except OSError as exc:
                print(f"Error deleting file {entry}: {exc}", file=sys.stderr)
            else:
                print(f"Deleted: {entry}")
                removed.append(entry)
        return removed

    def watch_processing(self) -> None:
        """Queue every file that appears in the processing folder until the server stops."""
        handler = _ProcessingHandler(self.queue, self.config.processing_dir)
        observer = Observer()
        observer.schedule(handler, os.path.abspath(self.config.processing_dir), recursive=False)
        observer.start()
        self._watching.set()
        try:
            self._stopping.wait()
        finally:
            observer.stop()
            observer.join()

    def run_processing(self) -> None:
        """Process queued jobs one at a time until the server stops."""
        while not self._stopping.is_set():
            if not self.queue.wait(_POLL_INTERVAL):
                continue
            name = self.queue.pop()
            try:
                self.process_job(name)
            except (OSError, ValueError) as exc:
                print(f"Job {name} failed: {exc}", file=sys.stderr)

    def process_job(self, name: str) -> None:
        """Run the job stored under ``name`` in the processing folder, then delete it."""
        path = self.config.processing_dir / name
        print(f"Processing {path}")
        if self.config.settle_delay > 0:
            time.sleep(self.config.settle_delay)
        with open(path, "rb") as stream:
            head = stream.read(self.config.buffer_size)
        if not head:
            raise ValueError(f"empty job file: {path}")
        header = Header.unpack(head)
        print(header.describe(), end="")
        if header.up_down == UPLOAD:
            try:
                print(run_symmetric(header.algorithm, header.enc_dec, path,
                                    self.config.outgoing_dir / name, header.key))
            except (CipherError, ValueError) as exc:
                print(exc, file=sys.stderr)
        else:
            self._send_result(header)
        path.unlink()

    def _send_result(self, header: Header) -> None:
        source = self.config.outgoing_dir / _job_name(header.user_uuid, header.job_uuid)
        print(f"Download from {source}")
        with open(source, "rb") as stream:
            client = self._client_by_descriptor(header.client_socket)
            for chunk in iter(partial(stream.read, self.config.buffer_size), b""):
                client.sendall(chunk)

    def _client_by_descriptor(self, descriptor: int) -> socket.socket:
        with self._lock:
            for client in self._sessions:
                if client.fileno() == descriptor:
                    return client
        raise ConnectionError(f"no connected client on descriptor {descriptor}")


def main(argv: list[str] | None = None) -> int:
    """Run the server until interrupted."""
    defaults = ServerConfig()
    parser = argparse.ArgumentParser(prog="cryptdrop-server", description="Run the file encryption server.")
    parser.add_argument("--host", default=defaults.host)
    parser.add_argument("--port", type=int, default=defaults.port)
    parser.add_argument("--admin-socket", type=Path, default=defaults.admin_socket)
    parser.add_argument("--log-file", type=Path, default=defaults.log_file)
    parser.add_argument("--root", type=Path, default=Path("."),
                        help="directory holding the processing, incomplete and outgoing folders")
    args = parser.parse_args(argv)
    config = ServerConfig(
        host=args.host,
        port=args.port,
        admin_socket=args.admin_socket,
        log_file=args.log_file,
        processing_dir=args.root / "processing",
        incomplete_dir=args.root / "incomplete",
        outgoing_dir=args.root / "outgoing",
    )
    server = Server(config)
    server.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0