from __future__ import annotations


class ApiError(Exception):
    """An error that is reported to the client as `{success: false, error: {code, message}}`."""

    def __init__(self, code: str, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class ProviderError(ApiError):
    def __init__(self, provider: str, code: str, message: str, status_code: int = 500) -> None:
        super().__init__(code, message, status_code)
        self.provider = provider


def code_for_upstream_status(status: int) -> str:
    if status in (401, 403):
        return "INVALID_API_KEY"
    if status == 402:
        return "INSUFFICIENT_CREDITS"
    if status == 429:
        return "RATE_LIMITED"
    return "API_ERROR"


def client_status_for_upstream(status: int) -> int:
    return 400 if 400 <= status < 500 else 500


def upstream_error(provider: str, status: int, message: str) -> ProviderError:
    return ProviderError(
        provider,
        code_for_upstream_status(status),
        message or f"{provider} returned HTTP {status}",
        client_status_for_upstream(status),
    )


def timeout_error(provider: str, seconds: float) -> ProviderError:
    return ProviderError(provider, "TIMEOUT", f"{provider} request timed out after {int(seconds)}s", 504)


def no_api_key(provider_name: str) -> ApiError:
    return ApiError("NO_API_KEY", f"No API key configured for {provider_name}", 401)
