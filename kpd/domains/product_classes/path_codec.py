"""
Path codec for KPD classification codes.

Converts public codes into the dot-delimited structural paths that all
hierarchy navigation is built on:

    "A"          -> "A"
    "A01"        -> "A.01"
    "A01.11.11"  -> "A.01.1.1.1.1"
    "C10.12.50"  -> "C.10.1.2.5.0"

The section letter is the first segment, the two-digit division the second,
and every remaining character of the digit tail becomes its own segment.
Separators inside the raw code carry no structural meaning.
"""

from dataclasses import dataclass
from typing import List, Optional

from ...shared.exceptions import LevelMismatchError
from .enums import CodeKind

PATH_SEPARATOR = "."
CODE_SEPARATOR = "."
DIVISION_WIDTH = 2


def encode_path(code: str) -> str:
    """
    Transform a full KPD code into its hierarchical path.

    No digit validation happens here: a malformed code yields a well-formed
    but meaningless path, which level validation is expected to catch.
    """
    code = code.strip()
    if len(code) <= 1:
        return code

    letter, rest = code[0], code[1:]
    division, remaining = rest[:DIVISION_WIDTH], rest[DIVISION_WIDTH:]
    segments = [letter, division]
    segments.extend(remaining.replace(CODE_SEPARATOR, ""))
    return PATH_SEPARATOR.join(segments)


def segment_count(path: str) -> int:
    return len(path.split(PATH_SEPARATOR))


def level_error(path: str, expected_level: int) -> Optional[str]:
    """Return the level mismatch message, or None when the path agrees."""
    actual_level = segment_count(path)
    if actual_level == expected_level:
        return None
    return f"Level mismatch: expected {expected_level} levels, got {actual_level}"


def validate_level(path: str, expected_level: int) -> None:
    """
    Check that the path has exactly ``expected_level`` segments.

    Raises:
        LevelMismatchError: with message
            "Level mismatch: expected {expected} levels, got {actual}"
    """
    if level_error(path, expected_level) is not None:
        raise LevelMismatchError(expected_level, segment_count(path))


def parent_path(path: str) -> Optional[str]:
    """Path of the immediate parent, None for a root."""
    segments = path.split(PATH_SEPARATOR)
    if len(segments) == 1:
        return None
    return PATH_SEPARATOR.join(segments[:-1])


def ancestor_paths(path: str) -> List[str]:
    """
    All ancestor paths ordered root first, excluding the path itself.

    >>> ancestor_paths("A.01.1.1")
    ['A', 'A.01', 'A.01.1']
    """
    segments = path.split(PATH_SEPARATOR)
    return [PATH_SEPARATOR.join(segments[:depth]) for depth in range(1, len(segments))]


def children_prefix(path: str) -> str:
    """LIKE pattern matching every path below ``path``."""
    return f"{path}{PATH_SEPARATOR}%"


@dataclass(frozen=True)
class CodeLookup:
    """A public code tagged with the column it must be looked up by."""
    kind: CodeKind
    code: str

    @property
    def is_valid(self) -> bool:
        return self.kind is not CodeKind.INVALID


def classify_code(code: str) -> CodeLookup:
    """
    Decide whether a public code is a full code or an official code.

    Codes starting with a letter are full codes ("A01.11"), codes starting
    with a digit are official codes ("01.11"); anything else is invalid.
    """
    code = (code or "").strip()
    if not code:
        return CodeLookup(CodeKind.INVALID, code)

    first = code[0]
    if first.isascii() and first.isalpha():
        return CodeLookup(CodeKind.BY_FULL_CODE, code)
    if first.isascii() and first.isdigit():
        return CodeLookup(CodeKind.BY_OFFICIAL_CODE, code)
    return CodeLookup(CodeKind.INVALID, code)


def official_code_for(full_code: str) -> str:
    """Official code derived from a full code; sections keep their letter."""
    full_code = full_code.strip()
    if len(full_code) <= 1:
        return full_code
    return full_code[1:]
