from typing import Optional


class PaperSaverError(Exception):
    """Base class for every error raised by the configuration engine."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class NotFound(PaperSaverError):
    def __init__(self, path):
        super().__init__(f"File not found: {path}")
        self.path = str(path)


class ParseError(PaperSaverError):
    """
    Raised when stored bytes are not a well-formed property list, or when a key
    in the tree is missing or carries the wrong type. ``key_path`` names the
    first offending key, segments joined with '/'.
    """

    def __init__(self, detail: str, key_path: Optional[str] = None):
        message = f"Failed to read plist: {detail}"
        if key_path:
            message = f"{message} (at '{key_path}')"
        super().__init__(message)
        self.detail = detail
        self.key_path = key_path


class WriteError(PaperSaverError):
    def __init__(self, detail: str):
        super().__init__(f"Failed to write plist: {detail}")
        self.detail = detail


class PermissionDenied(PaperSaverError):
    def __init__(self, reason: str):
        super().__init__(f"Permission denied: {reason}")
        self.reason = reason


class InvalidConfiguration(PaperSaverError):
    def __init__(self, detail: str):
        super().__init__(f"Invalid configuration: {detail}")
        self.detail = detail


class ScreensaverNotFound(PaperSaverError):
    def __init__(self, name: str):
        super().__init__(f"Screensaver not found: {name}")
        self.name = name


class SpaceNotFound(PaperSaverError):
    def __init__(self, space=None):
        message = "Space not found" if space is None else f"Space {space} not found"
        super().__init__(message)
        self.space = space


class DisplayNotFound(PaperSaverError):
    def __init__(self, display):
        super().__init__(f"Display {display} not found")
        self.display = display


class SpaceNotFoundOnDisplay(PaperSaverError):
    def __init__(self, display, space):
        super().__init__(f"Space {space} not found on Display {display}")
        self.display = display
        self.space = space


class ModernFeatureRequired(PaperSaverError):
    def __init__(self):
        super().__init__("This feature requires macOS 14.0 (Sonoma) or later")


class InvalidScreenIdentifier(PaperSaverError):
    def __init__(self):
        super().__init__("Invalid screen identifier provided")


class SystemVersionDetectionFailed(PaperSaverError):
    def __init__(self, detail: Optional[str] = None):
        message = "Failed to detect macOS version"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnknownError(PaperSaverError):
    def __init__(self, wrapped: BaseException):
        super().__init__(f"Unknown error: {wrapped}")
        self.wrapped = wrapped
