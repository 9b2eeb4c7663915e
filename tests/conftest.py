"""
Shared fixtures for depfile-tools tests.
"""

import pytest

from depfile_tools.cli_config import reset_config
from depfile_tools.error_handling import setup_error_handling
from depfile_tools.file_system import FileSystem, reset_file_system
from depfile_tools.structured_logging import configure_logging


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep every test away from real config files, env vars and globals."""
    home = tmp_path / "home"
    home.mkdir()
    workdir = tmp_path / "work"
    workdir.mkdir()

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(workdir)
    for name in [
        "DEPFILE_TOOLS_DIALECT",
        "DEPFILE_TOOLS_UNESCAPE",
        "DEPFILE_TOOLS_ENCODING",
        "DEPFILE_TOOLS_OUTPUT_FORMAT",
        "DEPFILE_TOOLS_QUIET",
        "DEPFILE_TOOLS_MAX_FILE_SIZE_MB",
        "DEPFILE_TOOLS_LOG_LEVEL",
    ]:
        monkeypatch.delenv(name, raising=False)

    reset_config()
    reset_file_system()
    setup_error_handling()
    configure_logging()
    yield
    reset_config()
    reset_file_system()
    setup_error_handling()
    configure_logging()


@pytest.fixture
def temp_dir(tmp_path):
    """Directory for files created by a test."""
    directory = tmp_path / "files"
    directory.mkdir()
    return directory


@pytest.fixture
def posix_fs():
    """POSIX-style file system rooted at /."""
    return FileSystem(style="posix", cwd="/")


@pytest.fixture
def windows_fs():
    """Windows-style file system rooted at C:\\."""
    return FileSystem(style="windows", cwd="C:\\")


@pytest.fixture
def sample_depfile(temp_dir):
    """A Makefile-style depfile with two outputs and three inputs."""
    depfile = temp_dir / "main.d"
    depfile.write_text("out/main.js out/main.js.map: src/main.dart src/util.dart\n  src/util.dart lib/a.dart\n")
    return depfile


@pytest.fixture
def sample_uri_list(temp_dir):
    """A URI list as written next to a compiled JavaScript file."""
    deps = temp_dir / "main.dart.js.deps"
    deps.write_text(
        "file:///Users/foo/collection.dart\n"
        "file:///Users/foo/algorithms.dart\n"
        "file:///Users/foo/canonicalized_map.dart\n"
    )
    return deps


@pytest.fixture
def malformed_depfile(temp_dir):
    """A depfile with no separator colon."""
    depfile = temp_dir / "broken.d"
    depfile.write_text("a.text b.txt\n")
    return depfile
