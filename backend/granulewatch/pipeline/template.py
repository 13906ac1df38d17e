"""
Minimal substitution templates.

Templates are plain text with name references bounded by a delimiter pair
that does not clash with shell syntax. The default pair is (( and )):

    h5_to_tiff ((.SVDNB)) ((.OutputDir))/((.Id)).tif

A reference is a name with an optional leading dot and optional surrounding
whitespace. There are no control-flow directives.
"""

import re
from typing import List, Mapping, Tuple, Union

from .errors import TemplateCompileError, TemplateEvalError
from .values import Scalar, format_scalar

LEFT_DELIM = "(("
RIGHT_DELIM = "))"

_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class Reference:
    """A single name lookup inside a template."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"Reference({self.name!r})"


Segment = Union[str, Reference]


class Template:
    """
    A compiled template.

    Compile once with `Template.compile`, render many times against
    different contexts.
    """

    def __init__(self, name: str, source: str, segments: List[Segment]):
        self.name = name
        self.source = source
        self._segments = segments

    @classmethod
    def compile(
        cls,
        name: str,
        source: str,
        delims: Tuple[str, str] = (LEFT_DELIM, RIGHT_DELIM),
    ) -> "Template":
        """
        Compile template source.

        Args:
            name: Template name used in error messages (variable or step name)
            source: Template text
            delims: (left, right) delimiter pair

        Returns:
            Compiled Template

        Raises:
            TemplateCompileError: On an unclosed reference or an invalid name
        """
        left, right = delims
        if not left or not right:
            raise TemplateCompileError(f"template {name!r}: empty delimiter")

        segments: List[Segment] = []
        pos = 0
        while True:
            start = source.find(left, pos)
            if start < 0:
                if pos < len(source):
                    segments.append(source[pos:])
                break
            if start > pos:
                segments.append(source[pos:start])

            end = source.find(right, start + len(left))
            if end < 0:
                raise TemplateCompileError(
                    f"template {name!r}: unclosed reference at offset {start}"
                )

            inner = source[start + len(left):end].strip()
            if inner.startswith("."):
                inner = inner[1:]
            if not _NAME_RE.fullmatch(inner):
                raise TemplateCompileError(
                    f"template {name!r}: invalid reference "
                    f"{source[start:end + len(right)]!r}"
                )
            segments.append(Reference(inner))
            pos = end + len(right)

        return cls(name, source, segments)

    @property
    def references(self) -> List[str]:
        """Names referenced by this template, in order of appearance."""
        return [s.name for s in self._segments if isinstance(s, Reference)]

    def render(self, context: Mapping[str, Scalar]) -> str:
        """
        Render against a context.

        Raises:
            TemplateEvalError: If a referenced name is missing from the context
        """
        parts = []
        for segment in self._segments:
            if isinstance(segment, Reference):
                try:
                    value = context[segment.name]
                except KeyError:
                    raise TemplateEvalError(
                        f"template {self.name!r}: no value for {segment.name!r}"
                    ) from None
                parts.append(format_scalar(value))
            else:
                parts.append(segment)
        return "".join(parts)

    def __repr__(self) -> str:
        return f"Template({self.name!r}, {self.source!r})"
