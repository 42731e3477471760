from __future__ import annotations


class ImageGenError(RuntimeError):
    """Base class for failures raised by the toolkit."""


class ConfigurationError(ImageGenError):
    """Missing credentials, invalid environment values or unknown presets."""


class BatchSetupError(ImageGenError):
    """A batch precondition failed; no items were processed."""


class ProviderError(ImageGenError):
    """A provider rejected a request or returned an unusable response."""


class PollTimeoutError(ProviderError, TimeoutError):
    """A queued job did not reach a terminal status in time."""
