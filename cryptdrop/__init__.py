"""File-encryption service: a TCP job server, a client and an admin ping, with AES-256-CBC and ChaCha20."""

__version__ = "0.1.0"