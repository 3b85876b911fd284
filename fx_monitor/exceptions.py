# fx_monitor/exceptions.py
"""Error taxonomy shared by the holder, the store and the command layer."""


class FxMonitorError(Exception):
    """Base exception for all fx_monitor errors."""


class QuoteError(FxMonitorError):
    """Raised by quote holder reads."""


class NotAllowedError(QuoteError):
    """Symbol is outside the configured universe. Permanent, user-facing."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Symbol not allowed: {symbol}")


class NoQuoteError(QuoteError):
    """Symbol is allowed but nothing was fetched for it yet. Transient."""

    def __init__(self, symbol: str, detail: str = ""):
        self.symbol = symbol
        message = f"No quote: {symbol}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class FetchError(FxMonitorError):
    """Provider request failed or returned an unusable payload."""

    def __init__(self, symbol: str, message: str):
        self.symbol = symbol
        self.message = message
        super().__init__(f"{symbol}: {message}")


class StoreError(FxMonitorError):
    """Alert store could not be loaded or persisted."""


class ParseError(FxMonitorError):
    """User command text could not be parsed."""
