# financial_gam_src/plotting_utils.py

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from typing import Optional, Sequence, Tuple
import logging

logger = logging.getLogger(__name__)

RESPONSE_LABEL = "Financial Account Balance"

# (point color, fitted-curve color) per predictor
PREDICTOR_COLORS = {
    "Exports": ("blue", "maroon"),
    "Imports": ("red", "black"),
    "DirectPortfolioLiabilities": ("orange", "green"),
}
DEFAULT_COLORS = ("tab:blue", "tab:red")


def _colors(predictor: str) -> Tuple[str, str]:
    return PREDICTOR_COLORS.get(predictor, DEFAULT_COLORS)


def humanize(name: str) -> str:
    """
    Turn a CamelCase column name into a label.

    Examples
    --------
    >>> humanize("DirectPortfolioLiabilities")
    'Direct Portfolio Liabilities'
    """
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0 and not name[i - 1].isupper():
            out.append(" ")
        out.append(ch)
    return "".join(out)


def plot_predictor_scatter(df: pd.DataFrame,
                           predictor: str,
                           response: str,
                           title: Optional[str] = None):
    """
    Scatter one predictor against the response, without a fit line.

    Parameters
    ----------
    df : pd.DataFrame
        Dataset or subset holding both columns
    predictor : str
        Column drawn on the x axis
    response : str
        Column drawn on the y axis
    title : str, optional
        Plot title (auto-generated if None)

    Returns
    -------
    matplotlib.figure.Figure
    """
    point_color, _ = _colors(predictor)
    fig, ax = plt.subplots(figsize=(7, 5))
    ax.scatter(df[predictor], df[response], color=point_color, s=18)
    ax.set_xlabel(humanize(predictor))
    ax.set_ylabel(humanize(response))
    ax.set_title(title or f"{humanize(predictor)} vs. {RESPONSE_LABEL}")
    return fig


def smooth_curve_frame(model,
                       predictor: str,
                       data: pd.DataFrame,
                       n_points: int = 100,
                       z: float = 1.96) -> pd.DataFrame:
    """
    Evaluate a fitted model over a uniform grid of one predictor.

    The grid spans [min, max] of the predictor in data. Other predictors of
    a multi-term model are held at their median in data.

    Parameters
    ----------
    model : FittedGam
        Fitted model containing the predictor
    predictor : str
        Predictor to vary
    data : pd.DataFrame
        Rows defining the grid range
    n_points : int, default=100
        Number of grid points
    z : float, default=1.96
        Normal quantile for the confidence band (1.96 gives 95%)

    Returns
    -------
    pd.DataFrame
        Columns [predictor, 'fit', 'se', 'lower', 'upper'] with
        lower = fit - z*se and upper = fit + z*se
    """
    if predictor not in model.spec.predictors:
        raise ValueError(f"Model '{model.name}' has no smooth term for '{predictor}'")

    grid = pd.DataFrame({
        predictor: np.linspace(float(data[predictor].min()), float(data[predictor].max()), n_points)
    })
    for other in model.spec.predictors:
        if other != predictor:
            grid[other] = float(data[other].median())

    fit, se = model.predict(grid)
    return pd.DataFrame({
        predictor: grid[predictor].to_numpy(),
        "fit": fit,
        "se": se,
        "lower": fit - z * se,
        "upper": fit + z * se,
    })


def plot_smooth_fit(data: pd.DataFrame,
                    curve: pd.DataFrame,
                    predictor: str,
                    response: str,
                    title: Optional[str] = None):
    """
    Scatter the observations with the fitted curve and its shaded confidence band.

    Parameters
    ----------
    data : pd.DataFrame
        Observed rows
    curve : pd.DataFrame
        Output of smooth_curve_frame for the same predictor
    predictor, response : str
        Column names
    title : str, optional
        Plot title (auto-generated if None)

    Returns
    -------
    matplotlib.figure.Figure
    """
    point_color, line_color = _colors(predictor)
    fig, ax = plt.subplots(figsize=(7, 5))
    ax.scatter(data[predictor], data[response], color=point_color, alpha=0.7, s=20, label="observed")
    ax.plot(curve[predictor], curve["fit"], color=line_color, linewidth=0.9, label="GAM fit")
    ax.fill_between(curve[predictor], curve["lower"], curve["upper"],
                    color=line_color, alpha=0.2, label="95% CI")
    ax.set_xlabel(humanize(predictor))
    ax.set_ylabel(RESPONSE_LABEL)
    ax.set_title(title or f"{humanize(predictor)} vs. {RESPONSE_LABEL}")
    ax.grid(True, alpha=0.3)
    ax.legend()
    return fig


def plot_actual_vs_predicted(actual: Sequence[float],
                             predicted: Sequence[float],
                             title: str = f"Actual vs. Predicted {RESPONSE_LABEL}"):
    """
    Scatter predicted against actual values with a dashed identity line.

    Returns
    -------
    matplotlib.figure.Figure
    """
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    fig, ax = plt.subplots(figsize=(6, 6))
    ax.scatter(actual, predicted, color="red", alpha=0.7, s=20)

    lo = float(np.nanmin(np.concatenate([actual, predicted])))
    hi = float(np.nanmax(np.concatenate([actual, predicted])))
    ax.plot([lo, hi], [lo, hi], color="black", linestyle="--", linewidth=1, label="y = x")

    ax.set_xlabel(f"Actual {RESPONSE_LABEL}")
    ax.set_ylabel(f"Predicted {RESPONSE_LABEL}")
    ax.set_title(title)
    ax.legend()
    return fig
