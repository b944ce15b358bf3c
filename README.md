# cryptdrop

cryptdrop is a small file-encryption service. A client uploads a file to
the server over TCP and chooses an algorithm, a key and a mode. The server
encrypts or decrypts the file with AES-256-CBC or ChaCha20 and keeps the
result, which the client can then download over the same connection.

The server uses a Unix domain socket, so it runs on POSIX systems only.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Running the server

```
cryptdrop-server
```

Options:

- `--host` (default: all interfaces) and `--port` (default `8090`): where
  clients connect;
- `--admin-socket` (default `/tmp/pcd_admin_socket`): the Unix socket for
  administrators;
- `--log-file` (default `/tmp/pcd_log_file`): the log file. The server
  appends a line to it at start-up;
- `--root` (default: the current directory): where the server creates and
  uses three folders:
  - `incomplete/` holds uploads that are still arriving;
  - `processing/` holds finished uploads and download requests that wait to
    be handled. A watcher thread queues each file that appears there, and a
    worker thread handles the queue one job at a time;
  - `outgoing/` holds the encrypted or decrypted results, named
    `<user uuid>_<job uuid>`.

Every client is given a user UUID when it connects. When a client
disconnects, the server deletes the files in `outgoing/` whose names start
with that UUID. Stop the server with Ctrl-C.

From Python, `cryptdrop.server.Server` takes a `ServerConfig` and can be used
as a context manager (`start` on entry, `stop` on exit).

## Running the client

```
cryptdrop-client [--host 127.0.0.1] [--port 8090]
```

The client shows a text menu:

1. **Upload File**: asks for the path of a file, an algorithm (`0` AES,
   `1` ChaCha20), a key and a mode (`0` encrypt, `1` decrypt), then sends the
   file. The server answers with the user and job UUIDs, which the client
   keeps.
2. **Download File**: asks where to save the result and requests the result
   of the last upload. Everything the server sends is written to that file.
3. **Exit**

## Querying the server as an administrator

```
cryptdrop-admin [--socket /tmp/pcd_admin_socket]
```

This connects to the administration socket and hangs up. On each such
connection the server prints the socket descriptors of the connected clients
to its own standard output; nothing is sent back to the administrator.

## Using the library

The ciphers work on files and can be used without the server:

```python
from cryptdrop.cyphers import run_symmetric

password = "password"
# algorithm 1 is ChaCha20, action 0 encrypts and action 1 decrypts
print(run_symmetric(1, 0, "notes.txt", "notes.enc", password))
print(run_symmetric(1, 1, "notes.enc", "notes.out", password))
```

`run_symmetric` returns a success message. It raises `ValueError` for an
unknown algorithm or action and `CipherError` when the operation fails. The
`Algorithm` and `Action` enums name the accepted values.

`encrypt_aes256_cbc`, `decrypt_aes256_cbc`, `encrypt_chacha20` and
`decrypt_chacha20` are also available one by one. Keys are derived with
`bytes_to_key`, which works like OpenSSL's `EVP_BytesToKey` with SHA-256 and
10000 rounds. The AES functions skip a leading packet header in the input
file, because they work on the job files that the server stores; the
ChaCha20 functions do not skip it. ChaCha20 output starts with `Salted__`,
then the 8-byte salt, then the 12-byte nonce.

Other building blocks:

- `cryptdrop.packet.Header`: the fixed-size header that goes before every
  packet, with `pack`, `unpack` and `describe`;
- `cryptdrop.jobqueue.JobQueue`: a thread-safe first-in, first-out queue of
  job names, with `push`, `pop`, `is_empty`, `clear` and `wait`;
- `cryptdrop.logfile.Logger`: appends lines to a log file;
- `cryptdrop.client.Client`: `Client.connect(host, port)`, then
  `upload_file(path, header)` and `download_file(path, header)`;
- `cryptdrop.admin.connect(path)`: the administrator's connection.

## Limitations

- Keys travel to the server in the packet header, and files travel in the
  clear; the connection itself is not encrypted.
- A download ends only when the server closes the connection, and the server
  keeps it open after sending a result. The menu's download therefore waits
  until the connection ends. From Python, pass `idle_timeout` to `Client` or
  `Client.connect` so that a download stops after that many seconds without
  data.
- Only the result of the last upload made on the current connection can be
  downloaded, and results are deleted when the client disconnects.
- There is no way to list jobs or their status.