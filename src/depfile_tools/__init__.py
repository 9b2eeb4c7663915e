"""Read and write build dependency files (depfiles)."""

__version__ = "1.0.0"

from .depfile import MAKE_DIALECT, URI_LIST_DIALECT, Depfile, escape_path
from .file_system import FileSystem, get_file_system

__all__ = [
    "Depfile",
    "FileSystem",
    "MAKE_DIALECT",
    "URI_LIST_DIALECT",
    "escape_path",
    "get_file_system",
    "__version__",
]
