from __future__ import annotations


class TokenFlowError(RuntimeError):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(TokenFlowError):
    status_code = 500


class ValidationError(TokenFlowError):
    status_code = 400


class MissingCodeError(ValidationError):
    def __init__(self, message: str = "No authorization code received") -> None:
        super().__init__(message)


class MissingVerifierError(ValidationError):
    def __init__(self, message: str = "No code verifier found") -> None:
        super().__init__(message)


class NoRefreshTokenError(ValidationError):
    status_code = 401

    def __init__(self, message: str = "No refresh token available. Please re-login.") -> None:
        super().__init__(message)


class ProviderError(TokenFlowError):
    status_code = 500


class NotConfiguredError(TokenFlowError):
    status_code = 401

    def __init__(
        self,
        message: str = (
            "Public PAT not configured. "
            "Set env COZE_PAT or websdk_pat in coze_oauth_config.json."
        ),
    ) -> None:
        super().__init__(message)
