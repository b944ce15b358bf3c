"""Password-based symmetric encryption of job files (AES-256-CBC and ChaCha20)."""

from __future__ import annotations

import hashlib
import os
import secrets
from collections.abc import Iterator
from enum import IntEnum
from functools import partial
from typing import BinaryIO, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from cryptdrop.packet import HEADER_SIZE

PathLike = Union[str, "os.PathLike[str]"]

SALT_SIZE = 8
KEY_SIZE = 32
IV_SIZE = 16
NONCE_SIZE = 12
BUF_SIZE = 4096
KDF_ROUNDS = 10000
MAGIC = b"Salted__"


class Algorithm(IntEnum):
    """Cipher selected by the ``algorithm`` field of a header."""

    AES = 0
    CHACHA20 = 1


class Action(IntEnum):
    """Direction selected by the ``enc_dec`` field of a header."""

    ENCRYPT = 0
    DECRYPT = 1


class CipherError(Exception):
    """Raised when a file cannot be encrypted or decrypted."""


def bytes_to_key(
    password: str | bytes,
    salt: bytes | None = None,
    key_len: int = KEY_SIZE,
    iv_len: int = IV_SIZE,
    count: int = KDF_ROUNDS,
) -> tuple[bytes, bytes]:
    """Derive a key and IV from ``password`` the way OpenSSL's EVP_BytesToKey does, with SHA-256."""
    if count < 1:
        raise ValueError("count must be at least 1")
    if salt is not None and len(salt) != SALT_SIZE:
        raise ValueError(f"salt must be {SALT_SIZE} bytes")
    data = password.encode("utf-8") if isinstance(password, str) else bytes(password)
    salt = salt or b""
    needed = key_len + iv_len
    material = b""
    digest = b""
    while len(material) < needed:
        digest = hashlib.sha256(digest + data + salt).digest()
        for _ in range(count - 1):
            digest = hashlib.sha256(digest).digest()
        material += digest
    return material[:key_len], material[key_len:needed]


def _chunks(stream: BinaryIO) -> Iterator[bytes]:
    return iter(partial(stream.read, BUF_SIZE), b"")


def _open_pair(infile: PathLike, outfile: PathLike) -> tuple[BinaryIO, BinaryIO]:
    try:
        fin = open(infile, "rb")
    except OSError as exc:
        raise CipherError(f"cannot open {infile}: {exc}") from exc
    try:
        fout = open(outfile, "wb")
    except OSError as exc:
        fin.close()
        raise CipherError(f"cannot open {outfile}: {exc}") from exc
    return fin, fout


def _aes_cipher(password: str) -> Cipher:
    key, iv = bytes_to_key(password, None, KEY_SIZE, IV_SIZE)
    return Cipher(algorithms.AES(key), modes.CBC(iv))


def _chacha_cipher(password: str, salt: bytes, nonce: bytes) -> Cipher:
    key, _ = bytes_to_key(password, salt, KEY_SIZE, 0)
    # 32-bit little-endian block counter starting at zero, then the nonce.
    return Cipher(algorithms.ChaCha20(key, bytes(4) + nonce), mode=None)


def encrypt_aes256_cbc(infile: PathLike, outfile: PathLike, password: str) -> None:
    """Encrypt the body of ``infile`` (everything after the job header) into ``outfile``."""
    fin, fout = _open_pair(infile, outfile)
    with fin, fout:
        fin.seek(HEADER_SIZE)
        encryptor = _aes_cipher(password).encryptor()
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        for chunk in _chunks(fin):
            fout.write(encryptor.update(padder.update(chunk)))
        fout.write(encryptor.update(padder.finalize()) + encryptor.finalize())


def decrypt_aes256_cbc(infile: PathLike, outfile: PathLike, password: str) -> None:
    """Decrypt the body of ``infile`` (everything after the job header) into ``outfile``."""
    fin, fout = _open_pair(infile, outfile)
    with fin, fout:
        fin.seek(HEADER_SIZE)
        decryptor = _aes_cipher(password).decryptor()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            for chunk in _chunks(fin):
                fout.write(unpadder.update(decryptor.update(chunk)))
            fout.write(unpadder.update(decryptor.finalize()) + unpadder.finalize())
        except ValueError as exc:
            raise CipherError(f"AES decryption failed: {exc}") from exc


def encrypt_chacha20(infile: PathLike, outfile: PathLike, password: str) -> None:
    """Encrypt all of ``infile`` into ``outfile``, prefixed by magic, salt and nonce."""
    fin, fout = _open_pair(infile, outfile)
    with fin, fout:
        salt = secrets.token_bytes(SALT_SIZE)
        nonce = secrets.token_bytes(NONCE_SIZE)
        encryptor = _chacha_cipher(password, salt, nonce).encryptor()
        fout.write(MAGIC + salt + nonce)
        for chunk in _chunks(fin):
            fout.write(encryptor.update(chunk))
        fout.write(encryptor.finalize())


def decrypt_chacha20(infile: PathLike, outfile: PathLike, password: str) -> None:
    """Decrypt a file written by :func:`encrypt_chacha20` into ``outfile``."""
    fin, fout = _open_pair(infile, outfile)
    with fin, fout:
        if fin.read(len(MAGIC)) != MAGIC:
            raise CipherError("Invalid header (no Salted__)")
        salt = fin.read(SALT_SIZE)
        nonce = fin.read(NONCE_SIZE)
        if len(salt) != SALT_SIZE or len(nonce) != NONCE_SIZE:
            raise CipherError("truncated salt or nonce")
        decryptor = _chacha_cipher(password, salt, nonce).decryptor()
        for chunk in _chunks(fin):
            fout.write(decryptor.update(chunk))
        fout.write(decryptor.finalize())


_OPERATIONS = {
    (Algorithm.AES, Action.ENCRYPT): (encrypt_aes256_cbc, "AES-256-CBC encryption succeeded."),
    (Algorithm.AES, Action.DECRYPT): (decrypt_aes256_cbc, "AES-256-CBC decryption succeeded."),
    (Algorithm.CHACHA20, Action.ENCRYPT): (encrypt_chacha20, "ChaCha20 encryption succeeded."),
    (Algorithm.CHACHA20, Action.DECRYPT): (decrypt_chacha20, "ChaCha20 decryption succeeded."),
}


def run_symmetric(
    alg: int, action: int, infile: PathLike, outfile: PathLike, password: str
) -> str:
    """Run the selected cipher in the selected direction and return a success message.

    Raises ``ValueError`` for an unknown algorithm or action and ``CipherError``
    when the operation itself fails.
    """
    try:
        algorithm = Algorithm(alg)
    except ValueError:
        raise ValueError(f"Unknown algorithm: {alg}") from None
    try:
        direction = Action(action)
    except ValueError:
        raise ValueError(f"Unknown action: {action}") from None
    operation, message = _OPERATIONS[(algorithm, direction)]
    operation(infile, outfile, password)
    return message