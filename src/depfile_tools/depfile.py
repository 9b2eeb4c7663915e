"""
Build dependency records ("depfiles").

A depfile records which output artifacts of a build step were derived from
which input files. Two dialects are read:

- the Makefile dialect, a single ``outputs: inputs`` line
- the URI-list dialect, one ``file://`` URI per line, paired with an
  output path supplied by the caller

Records are always written back in the Makefile dialect.
"""

import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .error_handling import (
    ErrorCallback,
    ErrorCategory,
    get_error_handler,
    log_filesystem_error,
    log_parsing_error,
)
from .file_system import FileSystem, PathLike, get_file_system
from .structured_logging import log_depfile_parsed, log_depfile_written, log_uri_skipped

MAKE_DIALECT = "make"
URI_LIST_DIALECT = "uri-list"

# A colon only separates outputs from inputs when whitespace or the end of
# the text follows it; a drive-letter colon ("C:\a.txt") never qualifies.
_SEPARATOR_COLON = re.compile(r":(?=[ \t\r\n]|\Z)")
_WHITESPACE = re.compile(r"[ \t\r\n]+")
_ESCAPED_TOKEN = re.compile(r"(?:\\ |[^ \t\r\n])+")


def _dedupe(paths: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(paths))


def _split_paths(text: str, unescape: bool) -> Tuple[str, ...]:
    if unescape:
        tokens = [token.replace("\\ ", " ") for token in _ESCAPED_TOKEN.findall(text)]
    else:
        tokens = [token for token in _WHITESPACE.split(text) if token]
    return _dedupe(tokens)


def escape_path(path: str) -> str:
    """Escape a path for the Makefile dialect. Only spaces are escaped."""
    return path.replace(" ", "\\ ")


@contextmanager
def _parsing_callback(error_callback: Optional[ErrorCallback]) -> Iterator[None]:
    if error_callback is None:
        yield
        return

    handler = get_error_handler()
    handler.register_callback(error_callback, ErrorCategory.PARSING)
    try:
        yield
    finally:
        handler.unregister_callback(error_callback, ErrorCategory.PARSING)


def _read(path: PathLike, file_system: FileSystem, function: str) -> str:
    try:
        return file_system.read_text(path)
    except (OSError, UnicodeError) as e:
        log_filesystem_error(
            f"Could not read depfile: {e}",
            "depfile",
            function,
            file_path=str(path),
            exception=e,
        )
        raise


@dataclass(frozen=True)
class Depfile:
    """
    An immutable dependency record.

    ``inputs`` and ``outputs`` keep the order in which paths were supplied.
    The parsers drop duplicates; direct construction trusts the caller and
    stores the sequences as given.
    """

    inputs: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))

    @classmethod
    def parse(
        cls,
        content: str,
        unescape: bool = False,
        source: Optional[str] = None,
        error_callback: Optional[ErrorCallback] = None,
    ) -> "Depfile":
        """
        Parse Makefile-dialect depfile text.

        Whitespace of any kind only separates paths. Content without a
        separator colon is treated as having no known dependencies and
        yields an empty record.

        Args:
            content: Full text of the depfile
            unescape: Treat backslash-space as a literal space inside a path
            source: Name of the file the text came from, for logging
            error_callback: Optional callback for parsing problems

        Returns:
            Depfile: The parsed record
        """
        with _parsing_callback(error_callback):
            match = _SEPARATOR_COLON.search(content)
            if match is None:
                if content.strip():
                    log_parsing_error(
                        "Invalid depfile: no separator colon found",
                        "depfile",
                        "parse",
                        file_path=source,
                    )
                log_depfile_parsed(MAKE_DIALECT, 0, 0, source=source)
                return cls()

            outputs = _split_paths(content[: match.start()], unescape)
            inputs = _split_paths(content[match.end() :], unescape)

        log_depfile_parsed(MAKE_DIALECT, len(outputs), len(inputs), source=source)
        return cls(inputs, outputs)

    @classmethod
    def parse_uri_list(
        cls,
        content: str,
        output: str,
        file_system: Optional[FileSystem] = None,
        source: Optional[str] = None,
        error_callback: Optional[ErrorCallback] = None,
    ) -> "Depfile":
        """
        Parse a newline-separated list of file:// URIs.

        Lines that are not file URIs are skipped; the parse itself never
        fails because of them.

        Args:
            content: Full text of the URI list
            output: The single output path the inputs were compiled into
            file_system: Converts URIs to native paths (default: host)
            source: Name of the file the text came from, for logging
            error_callback: Optional callback for parsing problems

        Returns:
            Depfile: Record with the decoded inputs and ``(output,)``
        """
        file_system = file_system or get_file_system()
        inputs: List[str] = []

        with _parsing_callback(error_callback):
            for line_number, raw_uri in enumerate(content.splitlines(), 1):
                if not raw_uri.strip():
                    continue
                try:
                    path = file_system.path_from_uri(raw_uri)
                except ValueError as e:
                    log_uri_skipped(line_number, str(e))
                    continue
                inputs.append(path)

        depfile = cls(_dedupe(inputs), (output,))
        log_depfile_parsed(URI_LIST_DIALECT, 1, len(depfile.inputs), source=source)
        return depfile

    @classmethod
    def parse_file(
        cls,
        path: PathLike,
        file_system: Optional[FileSystem] = None,
        unescape: bool = False,
        error_callback: Optional[ErrorCallback] = None,
    ) -> "Depfile":
        """Read and parse a Makefile-dialect depfile. Read failures propagate."""
        file_system = file_system or get_file_system()
        content = _read(path, file_system, "parse_file")
        return cls.parse(
            content, unescape=unescape, source=str(path), error_callback=error_callback
        )

    @classmethod
    def parse_uri_list_file(
        cls,
        path: PathLike,
        output: str,
        file_system: Optional[FileSystem] = None,
        error_callback: Optional[ErrorCallback] = None,
    ) -> "Depfile":
        """Read and parse a URI-list file. Read failures propagate."""
        file_system = file_system or get_file_system()
        content = _read(path, file_system, "parse_uri_list_file")
        return cls.parse_uri_list(
            content,
            output,
            file_system=file_system,
            source=str(path),
            error_callback=error_callback,
        )

    @classmethod
    def from_paths(cls, inputs: Sequence[str], outputs: Sequence[str]) -> "Depfile":
        """Build a record from paths a build step reported itself."""
        return cls(tuple(inputs), tuple(outputs))

    @property
    def is_empty(self) -> bool:
        return not self.inputs and not self.outputs

    def to_makefile(self) -> str:
        """
        Serialize to the Makefile dialect.

        Returns:
            str: ``outputs: inputs`` followed by a single newline
        """
        outputs = " ".join(escape_path(path) for path in self.outputs)
        inputs = " ".join(escape_path(path) for path in self.inputs)
        if inputs:
            return f"{outputs}: {inputs}\n"
        return f"{outputs}:\n"

    def write_to_file(
        self, path: PathLike, file_system: Optional[FileSystem] = None
    ) -> None:
        """Write the Makefile-dialect serialization. Write failures propagate."""
        file_system = file_system or get_file_system()
        try:
            file_system.write_text(path, self.to_makefile())
        except (OSError, UnicodeError) as e:
            log_filesystem_error(
                f"Could not write depfile: {e}",
                "depfile",
                "write_to_file",
                file_path=str(path),
                exception=e,
            )
            raise

        log_depfile_written(str(path), len(self.outputs), len(self.inputs))
