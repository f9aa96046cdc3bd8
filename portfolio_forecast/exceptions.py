#!/usr/bin/env python3
"""
Error kinds raised by the forecasting and optimization engine.

Validation errors subclass ValueError so callers that only know about
ValueError keep working. Training and cancellation errors subclass
RuntimeError.
"""


class PortfolioForecastError(Exception):
    """Root of all engine errors."""


class ValidationError(PortfolioForecastError, ValueError):
    """An input precondition failed before any numeric work was done."""


class MissingPortfolioError(ValidationError):
    """Portfolio (or portfolio identifier) is missing."""


class EmptySymbolError(ValidationError):
    """Symbol is None, empty or whitespace."""


class LengthMismatchError(ValidationError):
    """Two sequences that must be paired have different lengths."""


class InsufficientHistoryError(ValidationError):
    """Fewer data points than a calculation requires."""

    def __init__(self, required: int, available: int, what: str = "prices"):
        self.required = required
        self.available = available
        super().__init__(f"At least {required} {what} required, got {available}")


class ModelNotTrainedError(ValidationError):
    """A trainable model was asked to predict before it was fitted."""


class TrainingError(PortfolioForecastError, RuntimeError):
    """Fitting an estimator failed. Not retried internally."""


class OperationCancelledError(PortfolioForecastError, RuntimeError):
    """A long-running operation observed a cancelled token or an expired deadline."""


def require_symbol(symbol) -> str:
    """Return the stripped symbol or raise EmptySymbolError."""
    if symbol is None or not str(symbol).strip():
        raise EmptySymbolError("Symbol cannot be null or empty")
    return str(symbol).strip()


def require_same_length(first, second, what: str = "sequences") -> None:
    """Raise LengthMismatchError unless both sequences have equal length."""
    if len(first) != len(second):
        raise LengthMismatchError(
            f"{what} must have the same length ({len(first)} != {len(second)})"
        )
