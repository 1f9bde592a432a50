# financial_gam_src/errors.py

"""
Error taxonomy for the financial account GAM workflow.

Every failure that aborts a run derives from FinancialGamError so the entry
point can report it uniformly. Each error keeps the context needed to
diagnose it (file path, column name, ratio values, model name) as attributes
in addition to the message.
"""

from typing import Optional, Sequence


class FinancialGamError(Exception):
    """Base class for all workflow errors."""


class ConfigurationError(FinancialGamError):
    """Raised when a configuration value is missing or invalid."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class DataLoadError(FinancialGamError):
    """Raised when the input table is missing, malformed or empty."""

    def __init__(self, message: str, path=None, column: Optional[str] = None):
        super().__init__(message)
        self.path = path
        self.column = column


class InvalidSplitError(FinancialGamError):
    """Raised for split ratios that cannot partition the rows."""

    def __init__(self, message: str, ratios: Optional[Sequence[float]] = None, n_rows: Optional[int] = None):
        super().__init__(message)
        self.ratios = tuple(ratios) if ratios is not None else None
        self.n_rows = n_rows


class FitError(FinancialGamError):
    """Raised when a GAM cannot be fitted (degenerate basis, non-convergence)."""

    def __init__(self, message: str, model_name: Optional[str] = None, predictor: Optional[str] = None):
        super().__init__(message)
        self.model_name = model_name
        self.predictor = predictor


class EvaluationError(FinancialGamError):
    """Raised when a model cannot be evaluated on the given rows."""

    def __init__(self, message: str, model_name: Optional[str] = None, column: Optional[str] = None):
        super().__init__(message)
        self.model_name = model_name
        self.column = column
