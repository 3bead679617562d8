# app/errors.py


class StartupError(RuntimeError):
    """Anything that must stop the process before the listener binds."""


class ConfigError(StartupError):
    pass


class KeywordTableError(StartupError):
    pass


class BackendError(RuntimeError):
    """A chat backend call failed; callers mask it behind a fallback reply."""

    def __init__(self, backend: str, message: str):
        super().__init__(f"{backend}: {message}")
        self.backend = backend


class MessageParseError(ValueError):
    """Inbound webhook body is empty or not a WeChat XML envelope."""


class ServerError(StartupError):
    pass
