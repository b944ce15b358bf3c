[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cryptdrop"
version = "0.1.0"
description = "A small file-encryption service: clients upload files over TCP and the server encrypts or decrypts them with AES-256-CBC or ChaCha20."
requires-python = ">=3.10"
keywords = ["encryption", "aes", "chacha20", "file-transfer", "server"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
    "Topic :: Communications :: File Sharing",
]
dependencies = [
    "cryptography",
    "watchdog",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
cryptdrop-server = "cryptdrop.server:main"
cryptdrop-client = "cryptdrop.client:main"
cryptdrop-admin = "cryptdrop.admin:main"

[tool.hatch.build.targets.wheel]
packages = ["cryptdrop"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
