# financial_gam_src/metrics_utils.py

import numpy as np
import pandas as pd
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Union
import logging

from .errors import EvaluationError

logger = logging.getLogger(__name__)

ArrayLike = Union[List[float], np.ndarray, pd.Series]


@dataclass
class EvaluationResult:
    """Out-of-sample accuracy of one model on one subset."""

    model_name: str
    subset: str
    n: int
    rmse: float
    mae: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


def _paired_arrays(y_true: ArrayLike, y_pred: ArrayLike):
    yt = np.asarray(y_true, dtype=float).ravel()
    yp = np.asarray(y_pred, dtype=float).ravel()
    if yt.size == 0:
        raise EvaluationError("Cannot compute accuracy on an empty set of observations")
    if yt.size != yp.size:
        raise EvaluationError(f"Observed and predicted lengths differ ({yt.size} vs {yp.size})")
    if not (np.all(np.isfinite(yt)) and np.all(np.isfinite(yp))):
        raise EvaluationError("Observed or predicted values contain NaN/inf")
    return yt, yp


def rmse(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    """
    Root-mean-squared error, sqrt(mean((y_true - y_pred)^2)).

    Non-negative, and zero exactly when every prediction equals its
    observation.

    Raises
    ------
    EvaluationError
        On empty input, mismatched lengths or non-finite values.
    """
    yt, yp = _paired_arrays(y_true, y_pred)
    return float(np.sqrt(np.mean((yt - yp) ** 2)))


def mae(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    """Mean absolute error; same input rules as rmse."""
    yt, yp = _paired_arrays(y_true, y_pred)
    return float(np.mean(np.abs(yt - yp)))


def evaluate_model(model, data: pd.DataFrame, subset: str = "holdout") -> EvaluationResult:
    """
    Predict the response for every row of data and score the predictions.

    Parameters
    ----------
    model : FittedGam
        Fitted model; its spec names the response and predictors
    data : pd.DataFrame
        Evaluation rows, normally disjoint from the model's training rows
    subset : str, default="holdout"
        Label for reporting (e.g. 'validation', 'test')

    Returns
    -------
    EvaluationResult

    Raises
    ------
    EvaluationError
        If data is empty or lacks the response or a predictor column.
    """
    spec = model.spec
    if data is None or len(data) == 0:
        raise EvaluationError(f"Cannot evaluate model '{spec.name}' on an empty {subset} subset",
                              model_name=spec.name)
    missing = [c for c in [spec.response] + spec.predictors if c not in data.columns]
    if missing:
        raise EvaluationError(
            f"The {subset} subset lacks column(s) {missing} required by model '{spec.name}'",
            model_name=spec.name, column=missing[0],
        )

    y_pred, _ = model.predict(data)
    y_obs = data[spec.response].to_numpy(dtype=float)
    result = EvaluationResult(
        model_name=spec.name,
        subset=subset,
        n=len(data),
        rmse=rmse(y_obs, y_pred),
        mae=mae(y_obs, y_pred),
    )
    logger.info("Model '%s' on %s subset (n=%d): RMSE=%.6g, MAE=%.6g",
                result.model_name, subset, result.n, result.rmse, result.mae)
    return result
