[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "idlecraft"
version = "0.2.11"
description = "Building blocks for putting a Minecraft server to rest when idle: protocol helpers, proxying and server process management."
requires-python = ">=3.10"
keywords = ["minecraft", "server", "idle", "proxy", "protocol"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Games/Entertainment",
    "Topic :: System :: Networking",
]
dependencies = [
    "termcolor",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["idlecraft"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
