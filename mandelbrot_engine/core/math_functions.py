"""
Core mathematical functions for escape-time rendering.

This module provides the per-sample Mandelbrot iteration with its interior
shortcuts, periodicity detection and smooth coloring, plus the
PixelComputer that turns one interlaced shift of the image into colors.
"""

import math
import sys
import numpy as np
from typing import Callable, Optional, Tuple
from dataclasses import dataclass
import logging

from ..exceptions import RenderInterrupted
from ..rendering.coloring import BLACK, Palette, RGBTuple, interpolate_color
from .interlace import Shift

logger = logging.getLogger(__name__)

ESCAPE_LIMIT = float(1 << 16)
SMOOTHING_ITERATIONS = 4
EPSILON = sys.float_info.epsilon

Interrupted = Callable[[], bool]


class ComplexPlane:
    """Maps pixels of a center-origin image grid onto the complex plane."""

    def __init__(self, center_x: float, center_y: float, scale: float,
                 width: int, height: int):
        """
        Initialize view geometry.

        Args:
            center_x, center_y: Complex coordinate at the image center
            scale: Complex-plane distance between adjacent pixels
            width, height: Image resolution in pixels
        """
        if width <= 0 or height <= 0:
            raise ValueError("Width and height must be positive")
        if scale <= 0:
            raise ValueError("Scale must be positive")

        self.center_x = center_x
        self.center_y = center_y
        self.scale = scale
        self.width = width
        self.height = height
        self.half_width = width // 2
        self.half_height = height // 2

    def to_centered(self, col: int, row: int) -> Tuple[int, int]:
        """Convert image (column, row) to center-origin pixel coordinates."""
        return col - self.half_width, row - self.half_height

    def pixel_to_complex(self, x_d: int, y_d: int,
                         offset_x: float = 0.5, offset_y: float = 0.5) -> Tuple[float, float]:
        """
        Convert a point inside a centered pixel to a complex coordinate.

        Offsets are measured from the pixel's corner in pixel units; the
        default 0.5 lands on the pixel's own grid coordinate.
        """
        real = self.center_x + (x_d + offset_x - 0.5) * self.scale
        imag = self.center_y + (y_d + offset_y - 0.5) * self.scale
        return real, imag


@dataclass
class EscapeResult:
    """Outcome of iterating a single sample point."""
    iterations: int
    max_iterations: int
    zr: float
    zi: float
    steps: int = 0
    shortcut: bool = False

    @property
    def escaped(self) -> bool:
        """True if the orbit left the escape radius before the budget ran out."""
        return self.iterations < self.max_iterations


def in_main_cardioid_or_bulb(cr: float, ci: float) -> bool:
    """Closed-form test for the main cardioid and the period-2 bulb."""
    ci_sq = ci * ci
    q = (cr - 0.25) * (cr - 0.25) + ci_sq
    if q * (q + (cr - 0.25)) < ci_sq / 4.0:
        return True
    return (cr + 1.0) * (cr + 1.0) + ci_sq < 1.0 / 16.0


def escape_time(cr: float, ci: float, max_iterations: int,
                escape_limit: float = ESCAPE_LIMIT,
                smoothing_iterations: int = SMOOTHING_ITERATIONS,
                use_shortcut: bool = True,
                interrupted: Optional[Interrupted] = None) -> EscapeResult:
    """
    Iterate z <- z^2 + c starting from z = c.

    An orbit whose next value equals the current one to within machine
    epsilon has reached a fixed point and is counted as interior. Escaped
    orbits are iterated a few more times so the smoothed count is closer to
    its continuous limit.

    Args:
        cr, ci: Sample point
        max_iterations: Iteration budget
        escape_limit: Bound on |z|^2
        smoothing_iterations: Extra iterations after escape
        use_shortcut: Skip iteration for points in the cardioid or period-2 bulb
        interrupted: Polled once per iteration

    Returns:
        EscapeResult; ``iterations == max_iterations`` for interior points

    Raises:
        RenderInterrupted: If ``interrupted`` returns True
    """
    if use_shortcut and in_main_cardioid_or_bulb(cr, ci):
        return EscapeResult(max_iterations, max_iterations, cr, ci, shortcut=True)

    zr = cr
    zi = ci
    n = 0
    steps = 0

    while zr * zr + zi * zi <= escape_limit and n < max_iterations:
        if interrupted is not None and interrupted():
            raise RenderInterrupted()
        n += 1
        steps += 1
        next_zr = zr * zr - zi * zi + cr
        next_zi = 2.0 * zr * zi + ci
        # periodicity
        if abs(zr - next_zr) < EPSILON and abs(zi - next_zi) < EPSILON:
            n = max_iterations
            break
        zr = next_zr
        zi = next_zi

    if n < max_iterations:
        for _ in range(smoothing_iterations):
            if interrupted is not None and interrupted():
                raise RenderInterrupted()
            steps += 1
            next_zr = zr * zr - zi * zi + cr
            next_zi = 2.0 * zr * zi + ci
            if abs(zr - next_zr) < EPSILON and abs(zi - next_zi) < EPSILON:
                n = max_iterations
                break
            zr = next_zr
            zi = next_zi

    return EscapeResult(n, max_iterations, zr, zi, steps=steps)


def smooth_fraction(iterations: int, zr: float, zi: float) -> float:
    """
    Fractional part of the continuous iteration count
    ``n + 1 - log2(log2(|z|))``.

    Returns 0.0 when the count is not finite.
    """
    modulus = math.hypot(zr, zi)
    if not math.isfinite(modulus) or modulus <= 1.0:
        return 0.0
    nu = iterations + 1 - math.log2(math.log2(modulus))
    if not math.isfinite(nu):
        return 0.0
    return nu - math.floor(nu)


class PixelComputer:
    """Computes supersampled pixel colors for interlaced shifts."""

    def __init__(self, palette: Palette, max_iterations: int, supersample_count: int = 1,
                 escape_limit: float = ESCAPE_LIMIT,
                 smoothing_iterations: int = SMOOTHING_ITERATIONS,
                 use_shortcut: bool = True):
        """
        Initialize pixel computer.

        Args:
            palette: Shared color table
            max_iterations: Iteration budget per sample
            supersample_count: Random samples averaged per pixel
            escape_limit: Bound on |z|^2
            smoothing_iterations: Extra iterations after escape
            use_shortcut: Enable the cardioid/bulb interior test
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be positive")
        if supersample_count < 1:
            raise ValueError("supersample_count must be >= 1")

        self.palette = palette
        self.max_iterations = max_iterations
        self.supersample_count = supersample_count
        self.escape_limit = escape_limit
        self.smoothing_iterations = smoothing_iterations
        self.use_shortcut = use_shortcut

    def escape(self, cr: float, ci: float,
               interrupted: Optional[Interrupted] = None) -> EscapeResult:
        return escape_time(cr, ci, self.max_iterations, self.escape_limit,
                           self.smoothing_iterations, self.use_shortcut, interrupted)

    def color_for(self, result: EscapeResult) -> RGBTuple:
        """Map an escape result to a palette color; interior points are black."""
        if not result.escaped:
            return BLACK
        n = result.iterations
        t = smooth_fraction(n, result.zr, result.zi)
        return interpolate_color(self.palette.sample(n), self.palette.sample(n + 1), t)

    def sample_color(self, cr: float, ci: float,
                     interrupted: Optional[Interrupted] = None) -> RGBTuple:
        """Color of a single sample point."""
        return self.color_for(self.escape(cr, ci, interrupted))

    def compute_pixel(self, plane: ComplexPlane, x_d: int, y_d: int,
                      rng: np.random.Generator,
                      interrupted: Optional[Interrupted] = None) -> RGBTuple:
        """
        Average ``supersample_count`` randomly offset samples of one pixel.

        Args:
            plane: View geometry
            x_d, y_d: Centered pixel coordinates
            rng: Random source for the sample offsets
            interrupted: Polled before every sample and inside the escape loop

        Returns:
            Channel-wise average, integer-divided by the sample count
        """
        red = green = blue = 0
        for _ in range(self.supersample_count):
            if interrupted is not None and interrupted():
                raise RenderInterrupted()
            offset_x, offset_y = rng.random(2)
            cr, ci = plane.pixel_to_complex(x_d, y_d, offset_x, offset_y)
            r, g, b = self.sample_color(cr, ci, interrupted)
            red += r
            green += g
            blue += b

        count = self.supersample_count
        return (red // count, green // count, blue // count)

    def compute_shift(self, shift: Shift, region: np.ndarray, plane: ComplexPlane,
                      rng: np.random.Generator,
                      interrupted: Optional[Interrupted] = None) -> bool:
        """
        Fill the region owned by one shift.

        Args:
            shift: Sub-grid descriptor
            region: View returned by ``shift.region(image)``; the only
                memory this call writes to
            plane: View geometry
            rng: Random source owned by this task
            interrupted: Cancellation check

        Returns:
            True if every pixel was written, False if cancelled part way
        """
        try:
            for j, row in enumerate(shift.rows(plane.height)):
                if interrupted is not None and interrupted():
                    return False
                y_d = row - plane.half_height
                for i, col in enumerate(shift.columns(plane.width)):
                    if interrupted is not None and interrupted():
                        return False
                    x_d = col - plane.half_width
                    region[j, i] = self.compute_pixel(plane, x_d, y_d, rng, interrupted)
        except RenderInterrupted:
            return False
        return True
