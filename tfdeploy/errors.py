from typing import Optional


class PredictionError(Exception):
    """Base class for every error surfaced by a prediction call."""

    kind = "PredictionError"
    status_code = 500


class InvalidModelReference(PredictionError):
    kind = "InvalidModelReference"
    status_code = 400


class SignatureNotFound(PredictionError):
    kind = "SignatureNotFound"
    status_code = 404


class SchemaMismatch(PredictionError):
    kind = "SchemaMismatch"
    status_code = 400


class ConfigurationError(PredictionError):
    kind = "ConfigurationError"
    status_code = 500


class RemoteServiceError(PredictionError):
    """
    Failure reported by a web API or CloudML endpoint.

    `status_code` is the 502 this error maps to when relayed by the server;
    `remote_status` is the HTTP status returned by the remote side, or None when
    no response was received (connection refused, timeout, credential lookup).
    """

    kind = "RemoteServiceError"
    status_code = 502

    def __init__(self, message: str, remote_status: Optional[int] = None, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.remote_status = remote_status
        self.body = body
