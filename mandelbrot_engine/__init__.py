"""
Progressive Mandelbrot rendering engine.

This library renders escape-time images of the Mandelbrot set on a
background worker. Parameter changes supersede the pass in flight, so a
display layer can pan and zoom freely and only ever receives frames for
the view it asked for last.

Key Features:
- Restartable/abortable background render loop
- Interlaced partitioning of each frame into disjoint pixel sub-grids
- Random supersampling with smooth (continuous) coloring
- Cardioid/bulb interior shortcut and periodicity detection
- Ultra Fractal style color palette

Example usage:
    >>> from mandelbrot_engine import RenderController
    >>> def show(image, scale_factor, elapsed_ms):
    ...     print(image.shape, elapsed_ms)
    >>> with RenderController(on_frame=show) as controller:
    ...     controller.render(-0.5, 0.0, 1 / 200, 2, (640, 480))
"""

__version__ = "1.0.0"
__author__ = "Mandelbrot Engine Team"

from mandelbrot_engine.core.interlace import InterlaceScheduler, Shift
from mandelbrot_engine.core.math_functions import ComplexPlane, EscapeResult, PixelComputer, escape_time
from mandelbrot_engine.rendering.coloring import ColorRGB, Palette
from mandelbrot_engine.rendering.image_output import ImageExporter, RenderMetadata
from mandelbrot_engine.acceleration.thread_pool import ParallelMapExecutor
from mandelbrot_engine.io.config import ConfigManager, EngineConfig
from mandelbrot_engine.exceptions import (
    InvalidParameters,
    MandelbrotEngineError,
    RenderFailed,
    RenderInterrupted,
)

# Main API classes
from mandelbrot_engine.api import RenderController, RenderParameters

__all__ = [
    "RenderController",
    "RenderParameters",
    "InterlaceScheduler",
    "Shift",
    "ComplexPlane",
    "EscapeResult",
    "PixelComputer",
    "escape_time",
    "ColorRGB",
    "Palette",
    "ImageExporter",
    "RenderMetadata",
    "ParallelMapExecutor",
    "ConfigManager",
    "EngineConfig",
    "InvalidParameters",
    "MandelbrotEngineError",
    "RenderFailed",
    "RenderInterrupted",
]
