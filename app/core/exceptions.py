"""
Custom exception classes for the VidShare application.
These exceptions provide meaningful error messages and HTTP status codes.
"""


class VidShareException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationException(VidShareException):
    """Raised when request data validation fails."""

    def __init__(self, message: str):
        super().__init__(
            message=f"Validation error: {message}",
            status_code=400  # Bad Request
        )


class UnauthorizedException(VidShareException):
    """Raised when a token is missing, invalid, expired or credentials are wrong."""

    def __init__(self, message: str = "Unauthorized request"):
        super().__init__(
            message=message,
            status_code=401
        )


class ForbiddenException(VidShareException):
    """Raised when an authenticated user acts on a resource they do not own."""

    def __init__(self, action: str, resource: str):
        super().__init__(
            message=f"Not allowed to {action} this {resource}",
            status_code=403
        )
        self.action = action
        self.resource = resource


class UserNotFoundException(VidShareException):
    """Raised when a user is not found."""

    def __init__(self, identifier: str):
        super().__init__(
            message=f"User not found: {identifier}",
            status_code=404
        )
        self.identifier = identifier


class ChannelNotFoundException(VidShareException):
    """Raised when the target channel of a subscription does not exist."""

    def __init__(self, channel_id: str):
        super().__init__(
            message=f"Channel does not exist: {channel_id}",
            status_code=404
        )
        self.channel_id = channel_id


class VideoNotFoundException(VidShareException):
    """Raised when a video is not found."""

    def __init__(self, video_id: str):
        super().__init__(
            message=f"Video not found: {video_id}",
            status_code=404
        )
        self.video_id = video_id


class UserAlreadyExistsException(VidShareException):
    """Raised when registering a username or email that is already taken."""

    def __init__(self, username: str, email: str):
        super().__init__(
            message="User with this username or email already exists",
            status_code=409  # Conflict
        )
        self.username = username
        self.email = email


class UploadFailedException(VidShareException):
    """Raised when the media host rejects or fails an upload."""

    def __init__(self, asset: str, error: str):
        super().__init__(
            message=f"{asset} upload failed: {error}",
            status_code=500
        )
        self.asset = asset
        self.error = error
