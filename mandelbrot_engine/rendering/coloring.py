"""
Color palette construction for escape-time rendering.

The palette is a fixed-size lookup table built once from a short ramp of
control colors. Pixel tasks only read from it, so a single instance is
shared by every task of every render pass.
"""

import numpy as np
from typing import List, Optional, Tuple, Union, Sequence
from dataclasses import dataclass
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

RGBTuple = Tuple[int, int, int]

DEFAULT_PALETTE_SIZE = 512

# Number of control points the table is stretched across; the remaining
# entries of the 16-color ramp are never reached.
RAMP_SEGMENTS = 12


@dataclass(frozen=True)
class ColorRGB:
    """8-bit RGB color representation."""
    r: int
    g: int
    b: int

    def __post_init__(self):
        """Validate RGB values."""
        for component in (self.r, self.g, self.b):
            if not 0 <= component <= 255:
                raise ValueError("RGB components must be between 0 and 255")

    def to_tuple(self) -> RGBTuple:
        """Convert to RGB tuple."""
        return (self.r, self.g, self.b)


BLACK: RGBTuple = (0, 0, 0)

# Ultra Fractal style ramp: dark purple through blue and white to orange.
# The last four slots are left black; the table only fades into the first
# of them over its final segment.
ULTRA_FRACTAL_COLORS = [
    ColorRGB(25, 7, 26),
    ColorRGB(9, 1, 47),
    ColorRGB(0, 7, 100),
    ColorRGB(12, 44, 138),
    ColorRGB(24, 82, 177),
    ColorRGB(57, 125, 209),
    ColorRGB(211, 236, 248),
    ColorRGB(241, 233, 191),
    ColorRGB(248, 201, 95),
    ColorRGB(255, 170, 0),
    ColorRGB(204, 128, 0),
    ColorRGB(153, 87, 0),
    ColorRGB(0, 0, 0),
    ColorRGB(0, 0, 0),
    ColorRGB(0, 0, 0),
    ColorRGB(0, 0, 0),
]


def interpolate_color(start: Sequence[int], end: Sequence[int], t: float) -> RGBTuple:
    """
    Linearly blend two RGB colors.

    Args:
        start: Color returned for t == 0
        end: Color returned for t == 1
        t: Blend factor in [0, 1]

    Returns:
        Blended color, each channel rounded to the nearest integer
    """
    return (
        int(round(start[0] + (end[0] - start[0]) * t)),
        int(round(start[1] + (end[1] - start[1]) * t)),
        int(round(start[2] + (end[2] - start[2]) * t)),
    )


class Palette:
    """Immutable iteration -> color lookup table."""

    def __init__(self, size: int = DEFAULT_PALETTE_SIZE,
                 colors: Optional[List[Union[ColorRGB, Tuple[int, int, int]]]] = None,
                 name: str = "Ultra Fractal"):
        """
        Build the lookup table.

        Args:
            size: Number of entries in the table
            colors: Control colors; defaults to the Ultra Fractal ramp
            name: Human-readable name for the palette
        """
        if size <= 0:
            raise ValueError("Palette size must be positive")

        self.name = name
        self.colors = []

        for color in (ULTRA_FRACTAL_COLORS if colors is None else colors):
            if isinstance(color, ColorRGB):
                self.colors.append(color)
            elif isinstance(color, (tuple, list)) and len(color) == 3:
                self.colors.append(ColorRGB(*color))
            else:
                raise ValueError(f"Invalid color format: {color}")

        if len(self.colors) < 2:
            raise ValueError("Palette must contain at least 2 colors")

        self.size = size
        # The stock ramp is stretched over its first twelve points; custom
        # ramps span every segment they define.
        self.segments = RAMP_SEGMENTS if colors is None else len(self.colors) - 1
        self._entries = self._build_entries()
        self.table = np.array(self._entries, dtype=np.uint8)
        self.table.setflags(write=False)

        logger.debug(f"Built palette '{self.name}' with {self.size} entries")

    def _build_entries(self) -> List[RGBTuple]:
        entries = []
        for i in range(self.size):
            # Integer arithmetic keeps exact control boundaries exact.
            segment, remainder = divmod(i * self.segments, self.size)
            t = remainder / self.size
            start = self.colors[segment].to_tuple()
            end = self.colors[min(segment + 1, len(self.colors) - 1)].to_tuple()
            entries.append(interpolate_color(start, end, t))
        return entries

    def __len__(self) -> int:
        return self.size

    def sample(self, index: int) -> RGBTuple:
        """Look up a table entry; ``index`` wraps around the table size."""
        return self._entries[index % self.size]

    @classmethod
    def from_control_points(cls, colors: List[Union[ColorRGB, Tuple[int, int, int]]],
                            size: int = DEFAULT_PALETTE_SIZE, name: str = "Custom") -> 'Palette':
        """Create a palette spanning a custom ramp of control colors."""
        return cls(size=size, colors=list(colors), name=name)

    def save_to_file(self, filepath: Path) -> None:
        """Save palette to file in GPL format."""
        with open(filepath, 'w') as f:
            f.write("GIMP Palette\n")
            f.write(f"Name: {self.name}\n")
            f.write("#\n")

            for i, (r, g, b) in enumerate(self._entries):
                f.write(f"{r:3d} {g:3d} {b:3d} Color_{i}\n")

        logger.info(f"Saved palette '{self.name}' to {filepath}")

    @classmethod
    def load_from_file(cls, filepath: Path, size: int = DEFAULT_PALETTE_SIZE) -> 'Palette':
        """Load a GPL file; its colors become the control points of a new palette."""
        colors = []
        name = "Loaded_Palette"

        with open(filepath, 'r') as f:
            for line in f:
                line = line.strip()
                if line.startswith("Name:"):
                    name = line.split(":", 1)[1].strip()
                elif line and not line.startswith("#") and not line.startswith("GIMP"):
                    parts = line.split()
                    if len(parts) >= 3:
                        try:
                            colors.append(ColorRGB(int(parts[0]), int(parts[1]), int(parts[2])))
                        except ValueError:
                            continue

        if not colors:
            raise ValueError(f"No valid colors found in {filepath}")

        return cls.from_control_points(colors, size=size, name=name)
