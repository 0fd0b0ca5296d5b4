"""
Custom exception classes for GREnrich.

Provides clear, module-specific error types for the region enrichment
pipeline, separating recoverable input problems (dropped rows, unplaceable
regions) from fatal ones (misconfiguration, worker failures).
"""


class GREnrichError(Exception):
    """Base exception for all GREnrich errors."""
    pass


# ============================================================================
# Input / File errors
# ============================================================================

class FileFormatError(GREnrichError):
    """Raised when an input table has an unexpected or invalid format."""
    pass


class MalformedInputError(FileFormatError):
    """Raised when region rows lack the required columns.

    Rows that merely fail numeric coercion are dropped and logged instead.
    """

    def __init__(self, message: str, n_columns: int = None, required: int = None):
        super().__init__(message)
        self.n_columns = n_columns
        self.required = required


# ============================================================================
# Data validation errors
# ============================================================================

class ValidationError(GREnrichError):
    """Raised when input data fails validation checks."""
    pass


class MissingColumnError(ValidationError):
    """Raised when a required column is missing from a DataFrame."""

    def __init__(self, column: str, dataframe_name: str = "DataFrame", available: list = None):
        available_str = f" Available columns: {available}" if available else ""
        super().__init__(
            f"Required column '{column}' not found in {dataframe_name}.{available_str}"
        )
        self.column = column
        self.available = available


class EmptyDataError(ValidationError):
    """Raised when data is empty where it should not be."""

    def __init__(self, data_name: str = "data"):
        super().__init__(f"Empty {data_name} provided where non-empty data is required")
        self.data_name = data_name


# ============================================================================
# Configuration errors
# ============================================================================

class ConfigurationError(GREnrichError):
    """Raised for contradictory or missing configuration; aborts before sampling."""
    pass


class InvalidParameterError(ConfigurationError):
    """Raised when a parameter value is out of valid range."""

    def __init__(self, param: str, value, valid_range: str = ""):
        msg = f"Invalid value for '{param}': {value}"
        if valid_range:
            msg += f". Expected: {valid_range}"
        super().__init__(msg)
        self.param = param
        self.value = value


# ============================================================================
# Analysis errors
# ============================================================================

class AnalysisError(GREnrichError):
    """Base class for analysis-specific errors."""
    pass


class SamplingExhaustionError(AnalysisError):
    """Raised in strict mode when data regions have no eligible background placement."""

    def __init__(self, n_unplaceable: int, n_total: int):
        super().__init__(
            f"{n_unplaceable} of {n_total} data regions have no eligible background placement"
        )
        self.n_unplaceable = n_unplaceable
        self.n_total = n_total


class WorkerFailure(AnalysisError):
    """Raised when a null-sample task fails; the whole run is aborted."""

    def __init__(self, index: int, original: BaseException):
        super().__init__(
            f"Sample task {index} failed: {type(original).__name__}: {original}"
        )
        self.index = index
        self.original = original


class RunAbortedError(AnalysisError):
    """Raised when a run is cancelled or exceeds its timeout."""
    pass


# ============================================================================
# Validation helpers
# ============================================================================

def validate_dataframe(
    df,
    name: str = "DataFrame",
    required_columns: list = None,
    min_rows: int = 0,
) -> None:
    """Validate a DataFrame has expected shape and columns.

    Parameters
    ----------
    df : pd.DataFrame
        The DataFrame to validate.
    name : str
        Human-readable name for error messages.
    required_columns : list, optional
        Columns that must be present.
    min_rows : int
        Minimum number of rows required.

    Raises
    ------
    EmptyDataError
        If df is None or empty and min_rows > 0.
    MissingColumnError
        If a required column is missing.
    """
    import pandas as pd

    if df is None:
        raise EmptyDataError(name)

    if not isinstance(df, pd.DataFrame):
        raise ValidationError(f"Expected DataFrame for {name}, got {type(df).__name__}")

    if min_rows > 0 and len(df) < min_rows:
        if len(df) == 0:
            raise EmptyDataError(name)
        raise ValidationError(
            f"{name} has {len(df)} rows but at least {min_rows} are required"
        )

    if required_columns:
        for col in required_columns:
            if col not in df.columns:
                raise MissingColumnError(col, name, available=list(df.columns))


def validate_numeric_param(value, name: str, min_val=None, max_val=None) -> None:
    """Validate a numeric parameter is within acceptable bounds.

    Raises
    ------
    InvalidParameterError
        If the value is missing or out of range.
    """
    if value is None:
        raise InvalidParameterError(name, value, "a number")
    if min_val is not None and value < min_val:
        raise InvalidParameterError(name, value, f">= {min_val}")
    if max_val is not None and value > max_val:
        raise InvalidParameterError(name, value, f"<= {max_val}")
