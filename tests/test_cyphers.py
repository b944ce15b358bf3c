import hashlib

import pytest

from cryptdrop.cyphers import (
    Action,
    Algorithm,
    CipherError,
    bytes_to_key,
    decrypt_aes256_cbc,
    decrypt_chacha20,
    encrypt_aes256_cbc,
    encrypt_chacha20,
    run_symmetric,
)
from cryptdrop.packet import HEADER_SIZE, Header

PASSWORD = "password"
PLAINTEXT = b"The quick brown fox jumps over the lazy dog.\n" * 200


def _job_file(tmp_path, name, body):
    path = tmp_path / name
    path.write_bytes(Header(up_down=0).pack() + body)
    return path


def test_bytes_to_key_lengths():
    key, iv = bytes_to_key(PASSWORD, None, 32, 16, 3)
    assert len(key) == 32
    assert len(iv) == 16


def test_bytes_to_key_deterministic():
    key, iv = bytes_to_key(PASSWORD, b"12345678", 32, 16, 5)
    assert len(key) == 32
    assert len(iv) == 16
    assert bytes_to_key(PASSWORD, b"12345678", 32, 16, 5) == (key, iv)


def test_bytes_to_key_single_round_without_salt_is_plain_digest():
    key, iv = bytes_to_key(PASSWORD, None, 32, 0, 1)
    assert key == hashlib.sha256(b"password").digest()
    assert iv == b""


def test_bytes_to_key_key_is_prefix_of_longer_material():
    key, iv = bytes_to_key(PASSWORD, None, 32, 16, 4)
    longer, empty = bytes_to_key(PASSWORD, None, 48, 0, 4)
    assert empty == b""
    assert longer == key + iv


def test_bytes_to_key_salt_and_count_matter():
    base = bytes_to_key(PASSWORD, b"aaaaaaaa", 32, 0, 2)
    assert bytes_to_key(PASSWORD, b"bbbbbbbb", 32, 0, 2) != base
    assert bytes_to_key(PASSWORD, b"aaaaaaaa", 32, 0, 3) != base


def test_bytes_to_key_rejects_bad_salt():
    with pytest.raises(ValueError):
        bytes_to_key(PASSWORD, b"short", 32, 16, 1)


def test_aes_round_trip(tmp_path):
    src = _job_file(tmp_path, "job", PLAINTEXT)
    enc = tmp_path / "job.enc"
    encrypt_aes256_cbc(src, enc, PASSWORD)
    ciphertext = enc.read_bytes()
    assert len(ciphertext) % 16 == 0
    assert len(ciphertext) > len(PLAINTEXT)
    assert PLAINTEXT[:32] not in ciphertext

    wrapped = _job_file(tmp_path, "wrapped", ciphertext)
    out = tmp_path / "job.dec"
    decrypt_aes256_cbc(wrapped, out, PASSWORD)
    assert out.read_bytes() == PLAINTEXT


def test_aes_skips_header(tmp_path):
    first = tmp_path / "a"
    second = tmp_path / "b"
    first.write_bytes(b"\x01" * HEADER_SIZE + b"payload")
    second.write_bytes(b"\x02" * HEADER_SIZE + b"payload")
    encrypt_aes256_cbc(first, tmp_path / "a.enc", PASSWORD)
    encrypt_aes256_cbc(second, tmp_path / "b.enc", PASSWORD)
    assert (tmp_path / "a.enc").read_bytes() == (tmp_path / "b.enc").read_bytes()


def test_aes_input_shorter_than_header_gives_one_block(tmp_path):
    src = tmp_path / "tiny"
    src.write_bytes(b"abc")
    enc = tmp_path / "tiny.enc"
    encrypt_aes256_cbc(src, enc, PASSWORD)
    assert len(enc.read_bytes()) == 16


def test_aes_decrypt_truncated_ciphertext_fails(tmp_path):
    src = _job_file(tmp_path, "job", PLAINTEXT)
    enc = tmp_path / "job.enc"
    encrypt_aes256_cbc(src, enc, PASSWORD)
    wrapped = _job_file(tmp_path, "bad", enc.read_bytes()[:-3])
    with pytest.raises(CipherError):
        decrypt_aes256_cbc(wrapped, tmp_path / "out", PASSWORD)


def test_missing_input_raises(tmp_path):
    with pytest.raises(CipherError):
        encrypt_aes256_cbc(tmp_path / "absent", tmp_path / "out", PASSWORD)


def test_chacha_layout_and_round_trip(tmp_path):
    src = tmp_path / "plain"
    src.write_bytes(PLAINTEXT)
    enc = tmp_path / "plain.enc"
    encrypt_chacha20(src, enc, PASSWORD)
    data = enc.read_bytes()
    assert data.startswith(b"Salted__")
    assert len(data) == 8 + 8 + 12 + len(PLAINTEXT)

    out = tmp_path / "plain.dec"
    decrypt_chacha20(enc, out, PASSWORD)
    assert out.read_bytes() == PLAINTEXT


def test_chacha_uses_fresh_salt(tmp_path):
    src = tmp_path / "plain"
    src.write_bytes(PLAINTEXT)
    encrypt_chacha20(src, tmp_path / "one", PASSWORD)
    encrypt_chacha20(src, tmp_path / "two", PASSWORD)
    assert (tmp_path / "one").read_bytes() != (tmp_path / "two").read_bytes()


def test_chacha_wrong_password_gives_other_bytes(tmp_path):
    src = tmp_path / "plain"
    src.write_bytes(PLAINTEXT)
    enc = tmp_path / "plain.enc"
    encrypt_chacha20(src, enc, PASSWORD)
    out = tmp_path / "plain.dec"
    decrypt_chacha20(enc, out, "secret")
    assert out.read_bytes() != PLAINTEXT
    assert len(out.read_bytes()) == len(PLAINTEXT)


def test_chacha_decrypt_requires_magic(tmp_path):
    src = tmp_path / "junk"
    src.write_bytes(b"NotSalted" + bytes(40))
    with pytest.raises(CipherError, match="Salted__"):
        decrypt_chacha20(src, tmp_path / "out", PASSWORD)


def test_chacha_decrypt_truncated_nonce(tmp_path):
    src = tmp_path / "short"
    src.write_bytes(b"Salted__" + bytes(10))
    with pytest.raises(CipherError):
        decrypt_chacha20(src, tmp_path / "out", PASSWORD)


def test_enum_values():
    assert Algorithm(0) is Algorithm.AES
    assert Algorithm(1) is Algorithm.CHACHA20
    assert Action(0) is Action.ENCRYPT
    assert Action(1) is Action.DECRYPT


def test_run_symmetric_messages_and_round_trip(tmp_path):
    src = tmp_path / "plain"
    src.write_bytes(PLAINTEXT)
    enc = tmp_path / "enc"
    dec = tmp_path / "dec"
    assert (
        run_symmetric(1, 0, src, enc, PASSWORD) == "ChaCha20 encryption succeeded."
    )
    assert (
        run_symmetric(Algorithm.CHACHA20, Action.DECRYPT, enc, dec, PASSWORD)
        == "ChaCha20 decryption succeeded."
    )
    assert dec.read_bytes() == PLAINTEXT


def test_run_symmetric_aes_message(tmp_path):
    src = _job_file(tmp_path, "job", b"data")
    message = run_symmetric(0, 0, src, tmp_path / "out", PASSWORD)
    assert message == "AES-256-CBC encryption succeeded."


@pytest.mark.parametrize(
    "alg, action, text",
    [(5, 0, "Unknown algorithm: 5"), (0, 7, "Unknown action: 7"), (1, -1, "Unknown action: -1")],
)
def test_run_symmetric_rejects_unknown(tmp_path, alg, action, text):
    src = tmp_path / "plain"
    src.write_bytes(b"x")
    with pytest.raises(ValueError, match=text):
        run_symmetric(alg, action, src, tmp_path / "out", PASSWORD)


def test_run_symmetric_propagates_failure(tmp_path):
    src = tmp_path / "junk"
    src.write_bytes(b"garbage" * 10)
    with pytest.raises(CipherError):
        run_symmetric(1, 1, src, tmp_path / "out", PASSWORD)