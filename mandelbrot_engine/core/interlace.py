"""
Interlaced partitioning of an image into disjoint pixel sub-grids.

Each shift owns every ``gap``-th pixel in both directions, starting at its
own offset. Shifts never share a pixel, so parallel tasks can write their
part of the image without any locking.
"""

import numpy as np
from typing import Iterator, List, Tuple
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)

DEFAULT_INTERLACE_GAP = 10


@dataclass(frozen=True)
class Shift:
    """One interlaced sub-grid of the image."""
    index: int
    dx: int
    dy: int
    gap: int

    def rows(self, height: int) -> range:
        """Image rows owned by this shift."""
        return range(self.dy, height, self.gap)

    def columns(self, width: int) -> range:
        """Image columns owned by this shift."""
        return range(self.dx, width, self.gap)

    def pixels(self, width: int, height: int) -> Iterator[Tuple[int, int]]:
        """Iterate over the (column, row) pairs owned by this shift."""
        for row in self.rows(height):
            for col in self.columns(width):
                yield col, row

    def region(self, image: np.ndarray) -> np.ndarray:
        """
        Strided view of the pixels owned by this shift.

        Element ``[j, i]`` of the view is image pixel
        ``(row=dy + j*gap, col=dx + i*gap)``. Writes go straight into
        ``image``.
        """
        return image[self.dy::self.gap, self.dx::self.gap]


class InterlaceScheduler:
    """Produces the ordered shift sequence for one render pass."""

    def __init__(self, gap: int = DEFAULT_INTERLACE_GAP):
        """
        Initialize scheduler.

        Args:
            gap: Distance between pixels of the same shift, in both directions
        """
        if gap < 1:
            raise ValueError("Interlace gap must be >= 1")
        self.gap = gap

    def __len__(self) -> int:
        return self.gap * self.gap

    def shifts(self) -> List[Shift]:
        """
        Create the shift sequence.

        Offsets are produced in row-major order: ``dx`` advances fastest,
        then ``dy``.

        Returns:
            List of ``gap * gap`` Shift objects
        """
        shifts = []
        for dy in range(self.gap):
            for dx in range(self.gap):
                shifts.append(Shift(index=len(shifts), dx=dx, dy=dy, gap=self.gap))

        logger.debug(f"Created {len(shifts)} interlaced shifts with gap {self.gap}")
        return shifts
