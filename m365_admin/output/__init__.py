"""Output package — result rendering for stdout."""

from .formatter import format_output

__all__ = [
    "format_output",
]
