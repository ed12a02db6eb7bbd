"""Exceptions raised by the service layer and mapped to HTTP responses in main.py."""


class WasteManagementError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WasteManagementError):
    status_code = 400


class NotFoundError(WasteManagementError):
    status_code = 404


class ConflictError(WasteManagementError):
    status_code = 409
