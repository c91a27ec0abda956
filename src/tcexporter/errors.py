"""Exception hierarchy shared by the exporter's subsystems."""


class ExporterError(Exception):
    """Base class for every error raised by tc-exporter."""


# -- Rate limiting --

class RateLimitError(ExporterError):
    pass


class RateLimitedError(RateLimitError):
    """No token was available. Retryable."""

    def __init__(self, message: str = "rate limited: no tokens available"):
        super().__init__(message)


class LimiterClosedError(RateLimitError):
    """The limiter was stopped. Permanent."""

    def __init__(self, message: str = "rate limiter is closed"):
        super().__init__(message)


class RateLimitSizeError(RateLimitError, ValueError):
    def __init__(self, size: int):
        super().__init__(f"rate limit bucket size must be positive, got {size}")


class RateLimitTimeError(RateLimitError, ValueError):
    def __init__(self, interval: float):
        super().__init__(f"rate limit interval must be positive, got {interval}")


# -- Collectors --

class CollectorError(ExporterError):
    pass


class DuplicateCollectorError(CollectorError):
    def __init__(self, collector_id: str):
        self.collector_id = collector_id
        super().__init__(f"collector {collector_id!r} already registered")


class DuplicateFactoryError(CollectorError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"collector factory {name!r} already registered")


class FactoryNotFoundError(CollectorError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"collector factory {name!r} not found")


class UnsupportedKindError(CollectorError):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"unsupported qdisc kind: {kind!r}")


class ConfigTypeError(CollectorError, TypeError):
    """A collector was handed a config value of the wrong type."""


# -- Configuration file --

class ConfigError(ExporterError):
    pass


class ConfigNotFoundError(ConfigError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"config file not found: {path}")


class ConfigParseError(ConfigError):
    pass


class ConfigValidationError(ConfigError):
    pass
