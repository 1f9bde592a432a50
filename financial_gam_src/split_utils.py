# financial_gam_src/split_utils.py

import math
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Sequence, Tuple
import logging

from .errors import InvalidSplitError

logger = logging.getLogger(__name__)

RATIO_TOLERANCE = 1e-9


@dataclass(frozen=True)
class SplitIndices:
    """Disjoint train/validation/test row positions covering the whole dataset."""

    train: np.ndarray
    validation: np.ndarray
    test: np.ndarray

    @property
    def sizes(self) -> Tuple[int, int, int]:
        return len(self.train), len(self.validation), len(self.test)


def _round_half_up(x: float) -> int:
    # tolerance absorbs float error such as 0.2 / (1 - 0.6) < 0.5
    return int(math.floor(x + 0.5 + RATIO_TOLERANCE))


def validate_split_ratios(ratios: Sequence[float]) -> Tuple[float, float, float]:
    """
    Check that the ratios are three finite, non-negative fractions summing to at most 1.

    Raises
    ------
    InvalidSplitError
        With the offending ratios attached.
    """
    try:
        values = tuple(float(r) for r in ratios)
    except (TypeError, ValueError) as e:
        raise InvalidSplitError(f"Split ratios must be numeric, got {ratios!r}") from e
    if len(values) != 3:
        raise InvalidSplitError(f"Expected three split ratios (train, validation, test), got {values}", ratios=values)
    if not all(math.isfinite(r) and r >= 0 for r in values):
        raise InvalidSplitError(f"Split ratios must be finite and non-negative, got {values}", ratios=values)
    if sum(values) > 1.0 + RATIO_TOLERANCE:
        raise InvalidSplitError(f"Split ratios must sum to at most 1, got {values} (sum={sum(values):.6g})",
                                ratios=values)
    return values


def partition_indices(n: int, ratios: Sequence[float] = (0.6, 0.2, 0.2), seed: int = 123) -> SplitIndices:
    """
    Randomly partition row positions 0..n-1 into train, validation and test sets.

    The training rows are drawn without replacement from all rows; the
    validation rows are drawn from the remainder and the test set is whatever
    is left. Sizes are round(r_train * n) and round(r_val / (1 - r_train) *
    remaining), i.e. round(0.5 * remaining) for the default (0.6, 0.2, 0.2),
    rounding halves up.

    Parameters
    ----------
    n : int
        Number of rows.
    ratios : Sequence[float]
        (train, validation, test) fractions.
    seed : int
        Seed for numpy's default_rng; the same (n, ratios, seed) always gives
        the same partition.

    Returns
    -------
    SplitIndices
        Sorted, disjoint index arrays whose union is range(n).

    Raises
    ------
    InvalidSplitError
        If n < 1 or the ratios are invalid.
    """
    r_train, r_val, r_test = validate_split_ratios(ratios)
    if n is None or int(n) != n or n < 1:
        raise InvalidSplitError(f"Cannot partition {n} rows; at least one row is required",
                                ratios=(r_train, r_val, r_test), n_rows=n)
    n = int(n)

    rng = np.random.default_rng(seed)
    all_idx = np.arange(n)

    n_train = min(n, _round_half_up(r_train * n))
    train = rng.choice(all_idx, size=n_train, replace=False)
    remaining = np.setdiff1d(all_idx, train)

    val_share = r_val / (1.0 - r_train) if r_train < 1.0 else 0.0
    n_val = min(len(remaining), _round_half_up(val_share * len(remaining)))
    validation = rng.choice(remaining, size=n_val, replace=False)
    test = np.setdiff1d(remaining, validation)

    split = SplitIndices(train=np.sort(train), validation=np.sort(validation), test=np.sort(test))
    logger.debug("Partitioned %d rows (seed=%s) into sizes %s", n, seed, split.sizes)
    return split


def split_dataset(df: pd.DataFrame, split: SplitIndices) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """Return the (train, validation, test) row subsets of df."""
    return (
        df.iloc[split.train].reset_index(drop=True),
        df.iloc[split.validation].reset_index(drop=True),
        df.iloc[split.test].reset_index(drop=True),
    )
