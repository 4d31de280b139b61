from fastapi import status


class ProxyError(Exception):
    """Base error carrying the HTTP status it is reported with."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class MissingApiKey(ProxyError):
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidRequest(ProxyError):
    status_code = status.HTTP_400_BAD_REQUEST


class BackendError(ProxyError):
    """The backend answered with a non-success status or could not be reached."""

    def __init__(self, upstream_status: int | None, body: str) -> None:
        if upstream_status is None:
            message = f"Backend request failed: {body}"
        else:
            message = f"Backend API error: {upstream_status} - {body}"
        super().__init__(message)
        self.upstream_status = upstream_status
        self.body = body


class BackendTimeoutError(ProxyError):
    def __init__(self, timeout: float) -> None:
        super().__init__(
            f"Request timed out after {timeout:g} seconds, "
            "check the network connection or try a smaller image"
        )
        self.timeout = timeout


class UnexpectedOutputKind(ProxyError):
    """The backend returned text where an image was required."""

    def __init__(self, content: str) -> None:
        super().__init__(f"Model returned text instead of an image: {content}")
        self.content = content
