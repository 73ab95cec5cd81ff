"""
Exception types raised by the rendering engine.

Parameter problems are reported synchronously to the caller of
``RenderController.render``; failures that happen while a pass is running
are delivered to the controller's error callback instead.
"""


class MandelbrotEngineError(Exception):
    """Base class for all engine errors."""


class InvalidParameters(MandelbrotEngineError, ValueError):
    """Render parameters that can never produce an image."""


class RenderFailed(MandelbrotEngineError, RuntimeError):
    """A render pass could not be completed.

    Only the failing pass is affected; the controller keeps accepting
    new requests.
    """


class RenderInterrupted(MandelbrotEngineError):
    """Raised inside a render task when a restart or abort has been requested."""
