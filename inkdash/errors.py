class InkdashError(Exception):
    """Base class for all inkdash errors."""


class ConfigError(InkdashError, ValueError):
    """Configuration file or value is invalid."""


class RenderError(InkdashError):
    """An external collaborator (fetch, template, browser) failed."""


class RenderCancelled(RenderError):
    """The stop signal fired while a render was in flight."""


class EncodeError(InkdashError, ValueError):
    """The encoder was handed something that is not a monochrome grid."""
