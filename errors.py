"""Error types surfaced to the HTTP layer."""


class GalleryError(Exception):
    """Base error; status_code is the HTTP status the app maps it to."""

    status_code = 500
    prefix = "Internal error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.prefix}: {self.message}"

    @property
    def is_internal(self) -> bool:
        return self.status_code >= 500


class NotFoundError(GalleryError):
    status_code = 404
    prefix = "Not found"

    @classmethod
    def resource(cls, name: str) -> "NotFoundError":
        return cls(f"{name} not found")


class BadRequestError(GalleryError):
    status_code = 400
    prefix = "Bad request"


class UnsupportedFormatError(BadRequestError):
    def __init__(self, extension: str):
        super().__init__(f"Unsupported image format: {extension}")
        self.extension = extension


class ImageProcessingError(GalleryError):
    status_code = 500
    prefix = "Image processing error"


class ValidationError(GalleryError):
    status_code = 422
    prefix = "Validation error"
