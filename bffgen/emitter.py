"""Scoped text emitter for FASTBuild .bff files.

The writer owns every quoting and escaping decision. Callers hand it raw
strings; it never reorders or buffers, so the caller must resolve ordering
before the first write.
"""

from collections.abc import Sequence
from typing import TextIO

from .errors import InternalError

INDENT_UNIT = "\t"
_HORIZONTAL_LINE = ";" + "-" * 78
_SCOPE_PAIRS = {"{": "}", "[": "]"}


# ===--- Literal escaping ---=== #


def escape_literal(value: str, *, allow_macros: bool = False) -> str:
    """Escape a string for use inside a single-quoted .bff literal.

    `^` is the .bff escape character, so it is doubled first. A single quote
    becomes `^'` and a `$` becomes `^$` so it is not read as a macro reference.

    Args:
        value: Raw string.
        allow_macros: Leave `$` untouched so `$Name$` stays a macro reference.

    Returns:
        Escaped string without surrounding quotes.
    """
    escaped = value.replace("^", "^^").replace("'", "^'")
    if not allow_macros:
        escaped = escaped.replace("$", "^$")
    return escaped


def unescape_literal(value: str) -> str:
    """Invert escape_literal: every `^x` pair becomes `x`.

    A trailing lone `^` is kept as is.
    """
    chars: list[str] = []
    index = 0
    while index < len(value):
        char = value[index]
        if char == "^" and index + 1 < len(value):
            chars.append(value[index + 1])
            index += 2
            continue
        chars.append(char)
        index += 1
    return "".join(chars)


def quote(value: str, *, allow_macros: bool = False) -> str:
    return f"'{escape_literal(value, allow_macros=allow_macros)}'"


# ===--- Writer ---=== #


class ScopedWriter:
    """Stack-disciplined writer producing indented, brace-scoped statements.

    Output shape:

        Exec('name')
        {
            .ExecOutput = 'out.txt'
            .PreBuildDependencies =
            {
                'a',
                'b'
            }
        }

    The only mutable state is the stack of open scope closers; indentation is
    always its depth.
    """

    def __init__(self, stream: TextIO):
        self._stream = stream
        self._closers: list[str] = []
        self.push_count = 0
        self.pop_count = 0

    @property
    def depth(self) -> int:
        return len(self._closers)

    def _line(self, text: str) -> None:
        if text:
            self._stream.write(f"{INDENT_UNIT * self.depth}{text}\n")
        else:
            self._stream.write("\n")

    # Comments and layout

    def write_comment(self, comment: str) -> None:
        for line in comment.splitlines() or [""]:
            self._line(f"; {line}")

    def write_blank_line(self) -> None:
        self._line("")

    def write_section_header(self, section: str) -> None:
        self.write_blank_line()
        self._line(_HORIZONTAL_LINE)
        self.write_comment(section)
        self._line(_HORIZONTAL_LINE)

    # Statements

    def write_variable(
        self,
        key: str,
        value: str | bool,
        *,
        operation: str = "=",
        allow_macros: bool = False,
    ) -> None:
        """Write `.key = value`.

        Strings are quoted and escaped; booleans render as `true`/`false`.
        """
        if isinstance(value, bool):
            rendered = "true" if value else "false"
        else:
            rendered = quote(value, allow_macros=allow_macros)
        self._line(f".{key} {operation} {rendered}")

    def write_array(
        self,
        key: str,
        values: Sequence[str],
        *,
        operation: str = "=",
        allow_macros: bool = False,
    ) -> None:
        """Write `.key =` followed by a braced array, one quoted element per line.

        Every element except the last carries a trailing comma.
        """
        self._line(f".{key} {operation}")
        self.push_scope("{")
        last = len(values) - 1
        for index, value in enumerate(values):
            separator = "," if index < last else ""
            self._line(f"{quote(value, allow_macros=allow_macros)}{separator}")
        self.pop_scope()

    # Scopes

    def push_function_call(self, kind: str, name: str | None = None) -> None:
        """Open `Kind('name')`, or a bare `Kind` block when name is None."""
        self._line(f"{kind}({quote(name)})" if name is not None else kind)
        self.push_scope("{")

    def pop_function_call(self) -> None:
        self.pop_scope()

    def push_scope(self, opener: str = "{") -> None:
        if opener not in _SCOPE_PAIRS:
            raise InternalError(f"Unknown scope delimiter: {opener!r}")
        self._line(opener)
        self._closers.append(_SCOPE_PAIRS[opener])
        self.push_count += 1

    def pop_scope(self) -> None:
        if not self._closers:
            raise InternalError("Incorrect use of the .bff writer: no scope to pop")
        closer = self._closers.pop()
        self.pop_count += 1
        self._line(closer)

    def close(self) -> None:
        """Check that every pushed scope was popped.

        Raises:
            InternalError: If any scope is still open.
        """
        if self._closers:
            raise InternalError(
                f"Incorrect use of the .bff writer: {len(self._closers)} scope(s) left open"
            )
