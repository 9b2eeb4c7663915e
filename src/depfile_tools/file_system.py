"""
File-system capability used by the depfile readers and writers.

Path handling is done in an explicit style ("posix" or "windows") so that
depfiles for either platform can be produced and inspected on any host.
Disk access always goes to the host file system.
"""

import os
import re
from pathlib import Path, PurePath, PurePosixPath, PureWindowsPath
from typing import Optional, Type, Union
from urllib.parse import unquote, urlparse

PathLike = Union[str, "os.PathLike[str]"]

POSIX = "posix"
WINDOWS = "windows"

_DRIVE_SEGMENT = re.compile(r"^/[A-Za-z]:(?:/|$)")
_LOCAL_HOSTS = {"", "localhost"}


def host_style() -> str:
    """Return the path style of the running interpreter."""
    return WINDOWS if os.name == "nt" else POSIX


class FileSystem:
    """Read, write and resolve paths in a fixed path style."""

    def __init__(
        self,
        style: Optional[str] = None,
        cwd: Optional[str] = None,
        encoding: str = "utf-8",
    ):
        """
        Args:
            style: "posix" or "windows"; defaults to the host style
            cwd: Directory relative paths are resolved against
            encoding: Text encoding for reads and writes
        """
        style = (style or host_style()).lower()
        if style not in (POSIX, WINDOWS):
            raise ValueError(f"Unsupported path style: {style}")

        self.style = style
        self.encoding = encoding

        if cwd is None:
            cwd = os.getcwd() if style == host_style() else self._default_root()
        self.cwd = cwd

    def _default_root(self) -> str:
        return "C:\\" if self.style == WINDOWS else "/"

    @property
    def _path_type(self) -> Type[PurePath]:
        return PureWindowsPath if self.style == WINDOWS else PurePosixPath

    @property
    def path_separator(self) -> str:
        """The separator this style renders paths with."""
        return "\\" if self.style == WINDOWS else "/"

    def join(self, *parts: str) -> str:
        return str(self._path_type(*parts))

    def is_absolute(self, path: str) -> bool:
        return self._path_type(path).is_absolute()

    def absolute(self, path: str) -> str:
        """Resolve a path against the working directory without touching the disk."""
        if self.is_absolute(path):
            return str(self._path_type(path))
        return str(self._path_type(self.cwd, path))

    def path_from_uri(self, uri: str) -> str:
        """
        Convert a file:// URI to an absolute native path.

        Args:
            uri: The URI text

        Returns:
            str: Absolute path in this file system's style

        Raises:
            ValueError: If the text is not a file URI this style can represent
        """
        parsed = urlparse(uri.strip())
        if parsed.scheme.lower() != "file":
            raise ValueError(f"Not a file URI: {uri!r}")

        path = unquote(parsed.path)
        host = parsed.netloc

        if self.style == WINDOWS:
            if _DRIVE_SEGMENT.match(path):
                path = path[1:]
            path = path.replace("/", "\\")
            if host.lower() not in _LOCAL_HOSTS:
                path = f"\\\\{host}{path}"
        elif host.lower() not in _LOCAL_HOSTS:
            raise ValueError(f"Non-local file URI cannot be represented: {uri!r}")

        if not path:
            raise ValueError(f"File URI has no path: {uri!r}")

        return self.absolute(path)

    def read_text(self, path: PathLike) -> str:
        with open(Path(path), encoding=self.encoding) as f:
            return f.read()

    def write_text(self, path: PathLike, text: str) -> None:
        # newline="" keeps the serialized "\n" byte-for-byte on every host
        with open(Path(path), "w", encoding=self.encoding, newline="") as f:
            f.write(text)


# Global file system instance
_global_file_system: Optional[FileSystem] = None


def get_file_system() -> FileSystem:
    """Get the default host file system."""
    global _global_file_system
    if _global_file_system is None:
        _global_file_system = FileSystem()
    return _global_file_system


def set_file_system(file_system: FileSystem) -> None:
    """Replace the default file system."""
    global _global_file_system
    _global_file_system = file_system


def reset_file_system() -> None:
    """Reset the default file system (useful for testing)."""
    global _global_file_system
    _global_file_system = None
