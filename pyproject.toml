[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gridplay"
version = "0.1.0"
description = "A WebSocket server for two-player tic-tac-toe with automatic matchmaking."
requires-python = ">=3.10"
keywords = ["tic-tac-toe", "websocket", "game-server", "matchmaking", "multiplayer"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Board Games",
]
dependencies = [
    "websockets",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
gridplay = "gridplay.server:main"

[tool.hatch.build.targets.wheel]
packages = ["gridplay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
