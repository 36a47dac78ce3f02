[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "capivara"
version = "0.1.0"
description = "Deduplicating, zstd-compressed backups with point-in-time restore to local, SSH or WebDAV storage"
requires-python = ">=3.10"
keywords = ["backup", "restore", "snapshot", "zstd", "sftp", "webdav", "rsync"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Backup",
]
dependencies = [
    "zstandard",
    "paramiko",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
    "pytest-mock",
]

[project.scripts]
capivara-sync = "capivara.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["capivara"]

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
ignore_missing_imports = true
