class VertexaError(Exception):
    """Base class for errors raised by vertexa."""


class ConfigurationError(VertexaError):
    """Required settings (project, access token) are missing."""


class VertexAPIError(VertexaError):
    """The endpoint answered with a non-success status.

    The whole response body is kept so the caller sees the backend's own
    explanation.
    """

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Vertex AI error ({status_code}): {body}")


class StreamAborted(VertexaError):
    """The caller cancelled the turn."""

    def __init__(self, message: str = "Request was aborted"):
        super().__init__(message)
