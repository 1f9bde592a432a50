# financial_gam_src/data_utils.py

import pandas as pd
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple
import logging

from .errors import DataLoadError

logger = logging.getLogger(__name__)


def load_finance_data(data_path: Path, required_columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Load the financial account dataset from a delimited file with a header row.

    One row per period; the response (financial net lending/borrowing) and
    the predictor series are numeric columns. No transformation is applied
    beyond parsing the required columns as numbers.

    Parameters
    ----------
    data_path : Path
        CSV file to read.
    required_columns : Iterable[str], optional
        Columns that must be present and fully numeric.

    Returns
    -------
    pd.DataFrame
        Dataset with a fresh RangeIndex (row positions are the split indices).

    Raises
    ------
    DataLoadError
        If the file is missing, cannot be parsed, has no data rows, lacks a
        required column, or holds a missing/non-numeric value in one.
    """
    data_path = Path(data_path)
    if not data_path.is_file():
        raise DataLoadError(f"Data file not found: {data_path}", path=data_path)

    logger.info("Loading dataset from: %s", data_path)
    try:
        df = pd.read_csv(data_path)
    except pd.errors.EmptyDataError as e:
        raise DataLoadError(f"Data file is empty: {data_path}", path=data_path) from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise DataLoadError(f"Malformed data file {data_path}: {e}", path=data_path) from e

    if df.empty:
        raise DataLoadError(f"Data file has a header but no rows: {data_path}", path=data_path)

    df.columns = [str(c).strip() for c in df.columns]
    required = list(required_columns) if required_columns is not None else list(df.columns)

    missing = [c for c in required if c not in df.columns]
    if missing:
        raise DataLoadError(
            f"Data file {data_path} is missing required column(s) {missing}; found {list(df.columns)}",
            path=data_path,
            column=missing[0],
        )

    for col in required:
        parsed = pd.to_numeric(df[col], errors="coerce")
        bad = parsed.isna()
        if bad.any():
            row = int(bad.to_numpy().nonzero()[0][0])
            raw = df[col].iloc[row]
            raise DataLoadError(
                f"Column '{col}' in {data_path} has a missing or non-numeric value {raw!r} at data row {row + 1}",
                path=data_path,
                column=col,
            )
        df[col] = parsed.astype(float)

    df = df.reset_index(drop=True)
    logger.info("Loaded dataset with %d rows and %d columns", df.shape[0], df.shape[1])
    return df


def dataset_bounds(df: pd.DataFrame, columns: Iterable[str]) -> Dict[str, Tuple[float, float]]:
    """
    Return the (min, max) range of each column over the full dataset.

    The fitter places spline knots over these ranges so that models fitted on
    one subset can predict every row of the dataset.
    """
    return {c: (float(df[c].min()), float(df[c].max())) for c in columns}
