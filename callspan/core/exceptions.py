class CallTelemetryError(Exception):
    pass


class FlatteningError(CallTelemetryError):
    pass


class DepthExceededError(FlatteningError):
    def __init__(self, prefix: str, max_depth: int) -> None:
        self.prefix = prefix
        self.max_depth = max_depth
        super().__init__(
            f"Depth limit of {max_depth} exceeded while flattening payload. Prefix is {prefix!r}"
        )


class ConfigurationError(CallTelemetryError):
    pass


class GroupCallError(CallTelemetryError):
    pass


class CallError(CallTelemetryError):
    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        super().__init__(f"{code}: {message}" if message else code)
