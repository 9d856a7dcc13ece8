"""
Exceptions raised by the backtest core.

Both validation errors subclass ValueError so callers that already guard
against bad input with ``except ValueError`` keep working.
"""

from __future__ import annotations


class InvalidParameterError(ValueError):
    """A parameter or input value would make the computation meaningless."""


class EmptyRangeError(ValueError):
    """No price observations fall inside the requested date range."""


class BacktestCancelled(RuntimeError):
    """The caller asked the run to stop before it finished."""
