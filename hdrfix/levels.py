"""
Level Specifications
--------------------
Option values that are either an absolute number ("0.9", "400") or a
percentile of the image ("99.5%"). They are resolved to absolute numbers
exactly once, before any pixel work.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class LevelSpec:
    value: float
    is_percentile: bool = False

    @classmethod
    def parse(cls, source: Union[str, int, float, 'LevelSpec']) -> 'LevelSpec':
        """
        Parse "12.5" as an absolute value and "12.5%" as a percentile.

        Raises:
            ValueError: If the text is not a number (with optional '%').
        """
        if isinstance(source, LevelSpec):
            return source
        if isinstance(source, bool):
            raise ValueError(f"Not a level value: {source!r}")
        if isinstance(source, (int, float)):
            return cls(float(source))

        text = str(source).strip()
        if text.endswith('%'):
            return cls(float(text[:-1].strip()), is_percentile=True)
        return cls(float(text))

    def __str__(self) -> str:
        return f"{self.value:g}%" if self.is_percentile else f"{self.value:g}"
