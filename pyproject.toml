[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tlsrelay"
version = "0.1.0"
description = "A small TLS 1.3 echo server and client built on memory-BIO TLS layers, a priority work queue and a managed thread pool"
requires-python = ">=3.10"
dependencies = []
keywords = ["tls", "ssl", "echo", "server", "client", "thread-pool", "priority-queue"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = ["pytest", "cryptography"]

[project.scripts]
tlsrelay-server = "tlsrelay.server:main"
tlsrelay-client = "tlsrelay.client:main"

[tool.hatch.build.targets.wheel]
packages = ["tlsrelay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
