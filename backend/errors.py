"""
Error taxonomy shared by services and the HTTP layer.

Services raise these; the exception handlers in main.py turn them into
``{"error": message}`` responses with the matching status code.
"""


class AppError(Exception):
    """Base class for errors that carry an HTTP status"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(AppError):
    status_code = 404


class ValidationError(AppError):
    status_code = 400


class MessagingNotConfiguredError(AppError):
    """Reminder requested while the company has no messaging provider"""
    status_code = 400

    def __init__(self, message: str = "WhatsApp not configured. Please configure in Settings."):
        super().__init__(message)


class ProviderError(AppError):
    """Messaging backend rejected the request or was unreachable"""
    status_code = 500


class PersistenceError(AppError):
    status_code = 500
