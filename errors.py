#!/usr/bin/env python3
"""
Error types shared by the camera configuration console
"""


class ConsoleError(Exception):
    """Base class for every error raised by the console"""


class TransportError(ConsoleError):
    """HTTP or network failure talking to the camera"""

    def __init__(self, status, message):
        super().__init__(f"HTTP {status}: {message}" if status is not None else message)
        self.status = status
        self.message = message


class ValidationError(ConsoleError):
    """Local, user-correctable input problem caught before any request"""

    EMPTY = "Empty"
    TOO_LARGE = "TooLarge"
    BAD_EXTENSION = "BadExtension"
    REQUIRED = "Required"
    OUT_OF_RANGE = "OutOfRange"

    def __init__(self, kind, message, field=None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.field = field


class DomainRejection(ConsoleError):
    """The camera answered, but with a failure result code"""

    def __init__(self, code, message=""):
        super().__init__(f"Device rejected request (result {code}) {message}".strip())
        self.code = code
        self.message = message
