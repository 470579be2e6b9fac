"""Filesystem- and URL-safe slug value object."""

from __future__ import annotations

import dataclasses
import re
import unicodedata

from sheetstream.kernel.errors.domain import ValidationError


@dataclasses.dataclass(frozen=True, slots=True)
class Slug:
    """Lowercase ASCII slug whose words are joined by ``separator``."""

    value: str
    separator: str = "-"

    def __post_init__(self) -> None:
        sep = re.escape(self.separator)
        if not re.fullmatch(rf"[a-z0-9]+(?:{sep}[a-z0-9]+)*", self.value):
            raise ValidationError(
                f"Invalid slug (must be lowercase alphanumeric + {self.separator!r}): {self.value!r}"
            )

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_text(cls, text: str, separator: str = "-") -> "Slug":
        """Normalise arbitrary text into a slug.

        Rules applied in order:
        1. Transliterate to ASCII (accents dropped), lowercase, strip.
        2. Treat ``-``, ``_`` and whitespace as word boundaries.
        3. Remove every other non-alphanumeric character.
        4. Join words with *separator*, collapsing runs.

        Raises :class:`ValidationError` when nothing usable remains.
        """
        value = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
        value = value.lower().strip()
        value = re.sub(r"[\s_\-]+", " ", value)
        value = re.sub(r"[^a-z0-9 ]", "", value)
        return cls(separator.join(value.split()), separator)


__all__ = ["Slug"]
