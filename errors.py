"""Exception types shared across the analysis pipeline."""


class YueduError(Exception):
    """Base class for errors raised by Yuedu components."""


class SegmentationError(YueduError):
    """The tokenizer failed or produced spans that do not cover the text."""


class StoreError(YueduError):
    """The cache store could not be read or written."""


class TranscriptionError(YueduError):
    """The speech-to-text service failed or is not configured."""

    def __init__(self, message: str, configured: bool = True):
        super().__init__(message)
        self.configured = configured
