"""Fixed-size job header exchanged between clients and the server."""

from __future__ import annotations

import struct
import uuid
from dataclasses import dataclass

KEY_SIZE = 255

# Four ints, the NUL-terminated key, one pad byte to realign, three ints, two UUIDs.
_LAYOUT = struct.Struct(f"<4i{KEY_SIZE}sx3i16s16s")

HEADER_SIZE = _LAYOUT.size

UPLOAD = 0
DOWNLOAD = 1

MIDDLE = 0
FIRST = 1
LAST = 2

_NIL_UUID = uuid.UUID(int=0)
_RULE = "-------------------------"


@dataclass
class Header:
    """Control information carried at the start of every packet and job file."""

    up_down: int = -1
    first_middle_last: int = -1
    algorithm: int = -1
    key_len: int = -1
    key: str = ""
    enc_dec: int = -1
    message_len: int = -1
    client_socket: int = -1
    user_uuid: uuid.UUID = _NIL_UUID
    job_uuid: uuid.UUID = _NIL_UUID

    def pack(self, size: int = HEADER_SIZE) -> bytes:
        """Serialise the header into a zero-padded buffer of ``size`` bytes."""
        if size < HEADER_SIZE:
            raise ValueError(f"buffer of {size} bytes cannot hold a {HEADER_SIZE}-byte header")
        key = self.key.encode("utf-8", "surrogateescape")
        if len(key) >= KEY_SIZE:
            raise ValueError(f"key is {len(key)} bytes; at most {KEY_SIZE - 1} fit")
        try:
            raw = _LAYOUT.pack(
                self.up_down,
                self.first_middle_last,
                self.algorithm,
                self.key_len,
                key,
                self.enc_dec,
                self.message_len,
                self.client_socket,
                self.user_uuid.bytes,
                self.job_uuid.bytes,
            )
        except struct.error as exc:
            raise ValueError(f"header field out of range: {exc}") from exc
        return raw.ljust(size, b"\0")

    @classmethod
    def unpack(cls, data: bytes) -> Header:
        """Read a header from the start of ``data``."""
        if len(data) < HEADER_SIZE:
            raise ValueError(f"need {HEADER_SIZE} bytes for a header, got {len(data)}")
        (
            up_down,
            first_middle_last,
            algorithm,
            key_len,
            raw_key,
            enc_dec,
            message_len,
            client_socket,
            user_bytes,
            job_bytes,
        ) = _LAYOUT.unpack_from(data)
        key = raw_key.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")
        return cls(
            up_down=up_down,
            first_middle_last=first_middle_last,
            algorithm=algorithm,
            key_len=key_len,
            key=key,
            enc_dec=enc_dec,
            message_len=message_len,
            client_socket=client_socket,
            user_uuid=uuid.UUID(bytes=user_bytes),
            job_uuid=uuid.UUID(bytes=job_bytes),
        )

    def describe(self) -> str:
        """Return a human-readable, multi-line dump of the header."""
        lines = [
            f"Upload/Download: {self.up_down}",
            f"First/Middle/Last: {self.first_middle_last}",
            f"Message length: {self.message_len}",
            f"Algorithm: {self.algorithm}",
            f"Key length: {self.key_len}",
            f"Key: {self.key}",
            f"Enc/Dec: {self.enc_dec}",
            f"User UUID: {self.user_uuid}",
            f"Job UUID: {self.job_uuid}",
            f"Client socket: {self.client_socket}",
        ]
        return f"{_RULE}\n\n" + "\n".join(lines) + f"\n\n{_RULE}\n"