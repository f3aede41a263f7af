"""
Application errors.

Each error carries the HTTP status it is reported with. Handlers in main.py
render them as ``{"success": false, "message": ...}``.
"""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(AppError):
    status_code = 404


class InvalidInput(AppError):
    status_code = 400


class InvalidState(AppError):
    status_code = 400


class GatewayError(AppError):
    status_code = 400


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403
