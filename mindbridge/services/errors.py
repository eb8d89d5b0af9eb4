"""Errors shared by the service layer."""

from __future__ import annotations


class ServiceError(Exception):
    """Raised when a service rejects an operation.

    `status` is the HTTP status the route should answer with.
    """

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status
