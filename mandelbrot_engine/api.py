"""
Main API classes for progressive Mandelbrot rendering.

This module provides the RenderController, which owns a background render
worker and combines the palette, interlace scheduler, pixel computer and
thread pool into restartable render passes.
"""

import math
import numbers
import os
import sys
import numpy as np
from typing import Callable, Optional, Tuple
from dataclasses import dataclass, replace
from concurrent.futures import Executor
import logging
import threading
import time

from .acceleration.thread_pool import ParallelMapExecutor
from .core.interlace import InterlaceScheduler
from .core.math_functions import ComplexPlane, PixelComputer
from .exceptions import InvalidParameters, RenderFailed
from .io.config import EngineConfig
from .rendering.coloring import Palette
from .rendering.image_output import allocate_pixel_buffer

logger = logging.getLogger(__name__)

FrameCallback = Callable[[np.ndarray, float, int], None]
ErrorCallback = Callable[[RenderFailed], None]

LOW_PRIORITY_INCREMENT = 5


@dataclass
class RenderParameters:
    """One requested view of the Mandelbrot set."""

    center_x: float = -0.5
    center_y: float = 0.0
    scale_factor: float = 0.005
    supersample_count: int = 1
    image_size: Tuple[int, int] = (400, 300)  # width, height
    max_iterations: int = 0  # 0 = derive from scale_factor

    @property
    def width(self) -> int:
        return self.image_size[0]

    @property
    def height(self) -> int:
        return self.image_size[1]

    def validate(self):
        """Validate parameters, raising InvalidParameters."""
        try:
            width, height = self.image_size
        except (TypeError, ValueError):
            raise InvalidParameters("image_size must be a (width, height) pair") from None

        for value in (width, height, self.supersample_count, self.max_iterations):
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise InvalidParameters(f"Expected an integer, got {value!r}")

        for value in (self.center_x, self.center_y, self.scale_factor):
            if not isinstance(value, numbers.Real) or not math.isfinite(value):
                raise InvalidParameters(f"Expected a finite number, got {value!r}")

        if width <= 0 or height <= 0:
            raise InvalidParameters("Width and height must be positive")

        if self.scale_factor <= 0:
            raise InvalidParameters("scale_factor must be positive")

        if self.supersample_count < 1:
            raise InvalidParameters("supersample_count must be >= 1")

        if self.max_iterations < 0:
            raise InvalidParameters("max_iterations must be >= 0")

        self.resolve_max_iterations()

    def resolve_max_iterations(self) -> int:
        """
        Iteration budget for this view.

        A budget of 0 is derived from the zoom: tighter views need more
        iterations to resolve detail near the boundary.

        Raises:
            InvalidParameters: If the scale is too small to derive a budget
        """
        if self.max_iterations:
            return self.max_iterations
        zoom = 1 / (self.scale_factor * 5000)
        if not math.isfinite(zoom):
            raise InvalidParameters(f"scale_factor {self.scale_factor!r} is too small "
                                    "to derive an iteration budget; pass max_iterations")
        factor = int(zoom)
        return 1000 + factor * factor


class RenderController:
    """
    Background renderer with restart/abort semantics.

    ``render`` stores new parameters and returns immediately; the worker
    thread picks them up at the start of its next pass. A pass that is
    superseded by a newer request or by ``abort`` is discarded without
    reaching ``on_frame``.

    Usage:
        with RenderController(on_frame=show) as controller:
            controller.render(-0.5, 0.0, 1 / 200, 2, (800, 600))
            ...
    """

    def __init__(self, on_frame: Optional[FrameCallback] = None,
                 on_error: Optional[ErrorCallback] = None,
                 config: Optional[EngineConfig] = None,
                 executor: Optional[Executor] = None,
                 palette: Optional[Palette] = None):
        """
        Initialize render controller.

        Args:
            on_frame: Called on the worker thread with
                ``(image, scale_factor, elapsed_ms)`` for every completed pass
            on_error: Called on the worker thread with a RenderFailed when a
                pass fails; failures are logged if omitted
            config: Engine settings (uses defaults if None)
            executor: Executor for shift tasks; a private thread pool is
                created if None
            palette: Color table (built from ``config.palette_size`` if None)
        """
        self.config = config or EngineConfig()
        self.config.validate()

        self.on_frame = on_frame
        self.on_error = on_error
        self.palette = palette or Palette(self.config.palette_size)
        self.scheduler = InterlaceScheduler(self.config.interlace_gap)
        self._executor = ParallelMapExecutor(self.config.max_workers, executor)

        self._condition = threading.Condition()
        self._parameters = RenderParameters()
        self._restart = False
        self._abort = False
        self._thread: Optional[threading.Thread] = None

        self.last_seed: Optional[int] = None

        logger.info(f"RenderController initialized: gap={self.config.interlace_gap}, "
                    f"palette={len(self.palette)}, workers={self._executor.max_workers}")

    def __enter__(self) -> 'RenderController':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.abort()

    @property
    def is_running(self) -> bool:
        """True while the worker thread is alive."""
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def parameters(self) -> RenderParameters:
        """Copy of the most recently requested parameters."""
        with self._condition:
            return replace(self._parameters)

    def render(self, center_x: float, center_y: float, scale_factor: float,
               supersample_count: int, image_size: Tuple[int, int],
               max_iterations: int = 0) -> None:
        """
        Request a render of the given view.

        Starts the worker on first use; otherwise supersedes the pass in
        progress. Never waits for rendering.

        Raises:
            InvalidParameters: If the view cannot be rendered
        """
        params = RenderParameters(center_x, center_y, scale_factor,
                                  supersample_count, image_size, max_iterations)
        params.validate()
        params.image_size = (int(params.width), int(params.height))

        with self._condition:
            self._parameters = params
            if self._thread is None or not self._thread.is_alive():
                self._restart = False
                self._abort = False
                self._thread = threading.Thread(target=self._run, name="mandelbrot-render",
                                                daemon=True)
                self._thread.start()
            else:
                self._restart = True
                self._condition.notify_all()

    def restart(self) -> None:
        """Discard the pass in progress and render the current parameters again."""
        with self._condition:
            if self._thread is not None and self._thread.is_alive():
                self._restart = True
                self._condition.notify_all()

    def abort(self) -> None:
        """
        Stop the worker and wait for it to exit.

        No frame is delivered after this returns. Safe to call repeatedly;
        a later ``render`` starts a new worker.
        """
        with self._condition:
            self._abort = True
            self._condition.notify_all()
            thread = self._thread

        if thread is None or thread is threading.current_thread():
            return

        thread.join()
        self._executor.shutdown()

    close = abort

    def _interrupted(self) -> bool:
        return self._restart or self._abort

    def _run(self):
        """Worker loop: one render pass per wake-up until aborted."""
        self._lower_priority()
        logger.info("Render worker started")
        try:
            while True:
                with self._condition:
                    if self._abort:
                        return
                    params = self._parameters
                    self._restart = False

                try:
                    self._render_pass(params)
                except Exception as e:
                    self._report_failure(RenderFailed(f"Render pass failed: {e}"), cause=e)

                with self._condition:
                    while not (self._restart or self._abort):
                        self._condition.wait()
                    if self._abort:
                        return
        finally:
            with self._condition:
                aborted = self._abort
            # abort() from a callback cannot join this thread, so the pool stops here.
            if aborted:
                self._executor.shutdown()
            logger.info("Render worker stopped")

    def _lower_priority(self):
        """Best-effort nice increase for the worker thread (Linux only)."""
        if not self.config.low_priority or not sys.platform.startswith("linux"):
            return
        try:
            thread_id = threading.get_native_id()
            current = os.getpriority(os.PRIO_PROCESS, thread_id)
            os.setpriority(os.PRIO_PROCESS, thread_id, min(19, current + LOW_PRIORITY_INCREMENT))
        except OSError as e:
            logger.debug(f"Could not lower render worker priority: {e}")

    def _pass_seed(self) -> int:
        if self.config.seed is not None:
            return self.config.seed
        return np.random.SeedSequence().entropy

    def _render_pass(self, params: RenderParameters):
        """Render one frame for ``params`` and emit it unless superseded."""
        start_time = time.time()
        max_iterations = params.resolve_max_iterations()

        if self._abort or self._restart:
            return

        width, height = params.image_size
        try:
            image = allocate_pixel_buffer(width, height)
        except (MemoryError, ValueError) as e:
            self._report_failure(RenderFailed(f"Could not allocate {width}x{height} pixel buffer: {e}"))
            return

        plane = ComplexPlane(params.center_x, params.center_y, params.scale_factor, width, height)
        computer = PixelComputer(self.palette, max_iterations, params.supersample_count,
                                 self.config.escape_limit, self.config.smoothing_iterations)
        seed = self._pass_seed()
        self.last_seed = seed
        failed = threading.Event()

        def interrupted() -> bool:
            return self._restart or self._abort or failed.is_set()

        def run_shift(task) -> bool:
            shift, region = task
            rng = np.random.default_rng(np.random.SeedSequence(seed, spawn_key=(shift.index,)))
            return computer.compute_shift(shift, region, plane, rng, interrupted)

        # Each task receives only the strided view of the pixels it owns.
        tasks = [(shift, shift.region(image)) for shift in self.scheduler.shifts()]

        logger.debug(f"Render pass: {width}x{height}, center=({params.center_x}, {params.center_y}), "
                     f"scale={params.scale_factor}, max_iter={max_iterations}, seed={seed}")

        try:
            completed = self._executor.map_blocking(run_shift, tasks, stop_event=failed)
        except Exception as e:
            self._report_failure(RenderFailed(f"Render pass failed: {e}"), cause=e)
            return

        if not all(completed) or self._interrupted():
            logger.debug("Render pass superseded" if not self._abort else "Render pass aborted")
            return

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Frame complete: {width}x{height} in {elapsed_ms} ms")
        self._emit(image, params.scale_factor, elapsed_ms)

    def _emit(self, image: np.ndarray, scale_factor: float, elapsed_ms: int):
        if self.on_frame is None:
            return
        try:
            self.on_frame(image, scale_factor, elapsed_ms)
        except Exception:
            logger.exception("Frame callback failed")

    def _report_failure(self, error: RenderFailed, cause: Optional[BaseException] = None):
        if cause is not None:
            error.__cause__ = cause
        logger.error(str(error))
        if self.on_error is None:
            return
        try:
            self.on_error(error)
        except Exception:
            logger.exception("Error callback failed")
