"""
Exception hierarchy for the compression core.

Only CompressionFailure is meant to reach the user (as an item's error
status). The other kinds are recovered from or logged where they occur.
"""


class PlumeError(Exception):
    """Base class for all errors raised by plume."""


class StateTransitionError(PlumeError):
    """Raised when an item is asked to make an illegal status transition."""

    def __init__(self, item_id: str, from_status, to_status):
        self.item_id = item_id
        self.from_status = from_status
        self.to_status = to_status
        message = (
            f"Cannot transition item {item_id} from "
            f"{getattr(from_status, 'value', from_status)} to "
            f"{getattr(to_status, 'value', to_status)}"
        )
        super().__init__(message)
        self.message = message


class EstimationUnavailable(PlumeError):
    """The historical estimation store could not be read."""


class PersistenceFailure(PlumeError):
    """The historical estimation store could not be written."""


class CompressionFailure(PlumeError):
    """The external compressor reported an error for one item."""

    def __init__(self, message: str, item_id: str = None):
        self.item_id = item_id
        self.message = message
        super().__init__(message)


class UnsupportedImageFormatError(PlumeError):
    """Raised when a file does not carry a supported image extension."""

    def __init__(self, filename: str, extension: str = None):
        from plume.utils.enums.image_format import SUPPORTED_EXTENSIONS

        self.filename = filename
        self.extension = extension

        if extension is None:
            message = (
                f"File '{filename}' has no extension. Please provide a file with a valid extension."
            )
        else:
            message = (
                f"Image format '{extension}' is not supported. "
                f"Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}"
            )

        super().__init__(message)
        self.message = message
