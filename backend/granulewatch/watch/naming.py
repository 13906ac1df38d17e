"""
Filename conventions.

Granule files are named as separator-delimited tokens, for example:

    SVDNB_npp_d20240101_t0102030_e0103040_b12345_c20240101020304_noaa_ops.h5
    |     |___________________________________|
    kind   group id = tokens[1:5]

The first token identifies the kind of file (matched against the required
prefixes); a fixed slice of the following tokens identifies the group.
"""

from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import NameFormatError


class NameFormat(BaseModel):
    """How to derive a group id from a filename."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    separator: str = Field(default="_", alias="Separator", min_length=1)
    min_tokens: int = Field(default=6, alias="MinTokens", ge=1)
    start: int = Field(default=1, alias="Start", ge=0)
    end: int = Field(default=5, alias="End", ge=1)

    @model_validator(mode="after")
    def validate_slice(self) -> "NameFormat":
        if self.start >= self.end:
            raise ValueError(f"Start ({self.start}) must be less than End ({self.end})")
        if self.end > self.min_tokens:
            raise ValueError(
                f"End ({self.end}) must not exceed MinTokens ({self.min_tokens})"
            )
        return self

    def extract_id(self, name: str) -> str:
        """
        Derive the group id from a base filename.

        Raises:
            NameFormatError: If the name has fewer than min_tokens tokens
        """
        parts = name.split(self.separator)
        if len(parts) < self.min_tokens:
            raise NameFormatError(
                f"Name does not satisfy expected pattern: {name} "
                f"({len(parts)} tokens, need {self.min_tokens})"
            )
        return self.separator.join(parts[self.start:self.end])


def match_prefix(name: str, required: Sequence[str]) -> Optional[str]:
    """
    Return the first required prefix the name starts with, or None.

    Order matters: with required ["SVM1", "SVM10"], "SVM10_..." matches
    "SVM1".
    """
    for prefix in required:
        if name.startswith(prefix):
            return prefix
    return None
