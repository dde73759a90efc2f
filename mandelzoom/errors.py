"""Errors raised while rendering a zoom sequence."""


class RenderError(RuntimeError):
    """Base class for failures that abort a render run."""


class ResourceExhaustion(RenderError):
    """A frame buffer or device allocation could not be satisfied."""


class ComputeUnavailable(RenderError):
    """No usable parallel execution substrate was found."""


class EncodeFailure(RenderError):
    """The image encoder rejected a frame buffer or output path."""


class OutputUnavailable(RenderError):
    """The frame directory could not be created or is not a directory."""
