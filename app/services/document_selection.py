"""
Section selection shared by the preview and both export formats.
"""
from __future__ import annotations

from typing import Iterable, List, Protocol


class _SectionLike(Protocol):
    order: int
    is_hidden: bool


def select_visible_sections(sections: Iterable[_SectionLike]) -> List[_SectionLike]:
    """Visible sections sorted by ``order`` (stable for equal orders)."""
    return sorted((s for s in sections if not s.is_hidden), key=lambda s: s.order)
