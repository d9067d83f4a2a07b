class IconStudioError(Exception):
    """
    Base class for every error raised by favicon_studio.
    `code` is a stable identifier for callers, str(error) is the user-facing message.
    """
    code = "APP_ERROR"
    retryable = False

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(IconStudioError):
    code = "FILE_VALIDATION_ERROR"


class UnsupportedTypeError(ValidationError):
    code = "FILE_TYPE_UNSUPPORTED"


class FileTooLargeError(ValidationError):
    code = "FILE_TOO_LARGE"


class EmptyFileError(ValidationError):
    code = "FILE_EMPTY"


class InvalidDimensionsError(ValidationError):
    code = "IMAGE_DIMENSIONS_INVALID"


class DecodeError(IconStudioError):
    code = "IMAGE_LOAD_ERROR"


class DecodeTimeoutError(DecodeError):
    code = "IMAGE_LOAD_TIMEOUT"


class DecodeFailureError(DecodeError):
    code = "IMAGE_LOAD_ERROR"


class ImageDecodeError(DecodeFailureError):
    code = "RENDER_SOURCE_INVALID"


class RenderingUnsupportedError(IconStudioError):
    code = "CANVAS_NOT_SUPPORTED"


class SynthesisError(IconStudioError):
    code = "SYNTHESIS_FAILED"


class ExternalAnalysisError(IconStudioError):
    code = "AI_SERVICE_ERROR"


class ExternalAnalysisTransientError(ExternalAnalysisError):
    code = "AI_RATE_LIMIT_ERROR"
    retryable = True


class EditSessionError(IconStudioError):
    code = "EDIT_SESSION_STATE"


def user_message(error: BaseException) -> str:
    if isinstance(error, IconStudioError):
        return error.message
    text = str(error)
    if "timeout" in text.lower():
        return "Request timed out. Please try again."
    if text and len(text) < 100:
        return text
    return "An unexpected error occurred. Please try again."
