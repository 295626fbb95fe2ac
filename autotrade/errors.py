"""Error taxonomy shared by providers, the risk engine and the engine.

Only ``TransientProviderError`` is retried.  Everything else is surfaced
once and handled at the step that raised it.
"""


class ProviderError(Exception):
    """An external provider call failed."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class TransientProviderError(ProviderError):
    """Timeout, transport failure, rate limit or 5xx — safe to retry."""


class ConfigurationError(ProviderError):
    """A provider is missing credentials or settings.

    Fatal for the affected call only; the capability is skipped.
    """


class DataInsufficientError(Exception):
    """Not enough market data to analyse a symbol (no snapshot, short series)."""


class ExecutionError(ProviderError):
    """The execution sink refused or failed an order."""
