# financial_gam_src/diagnostics_utils.py

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from dataclasses import dataclass
from typing import List, Sequence
import logging

import statsmodels.api as sm
from statsmodels.stats.diagnostic import het_breuschpagan
from statsmodels.stats.stattools import jarque_bera

logger = logging.getLogger(__name__)


@dataclass
class ResidualTestResult:
    """Outcome of one residual assumption test."""

    test_name: str
    statistic: float
    p_value: float
    null_hypothesis: str
    significance_level: float = 0.05

    @property
    def rejects_null(self) -> bool:
        return self.p_value < self.significance_level

    @property
    def interpretation(self) -> str:
        verdict = "rejected" if self.rejects_null else "not rejected"
        return f"{self.test_name}: {self.null_hypothesis} {verdict} (stat={self.statistic:.4g}, p={self.p_value:.4g})"


def _clean(values: Sequence[float]) -> np.ndarray:
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size == 0:
        raise ValueError("Residual diagnostics need at least one residual")
    return arr


def plot_residual_qq(residuals: Sequence[float], title: str = "Q-Q Plot of Residuals"):
    """
    Quantile-quantile plot of residuals against the normal distribution.

    The reference line passes through the first and third quartiles.

    Returns
    -------
    matplotlib.figure.Figure
    """
    resid = _clean(residuals)
    fig, ax = plt.subplots(figsize=(6, 6))
    sm.qqplot(resid, line="q", ax=ax, markerfacecolor="tab:blue", markeredgecolor="tab:blue", alpha=0.7)
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    return fig


def plot_residuals_vs_fitted(fitted: Sequence[float],
                             residuals: Sequence[float],
                             title: str = "Residuals vs. Fitted"):
    """
    Scatter residuals against fitted values with a horizontal zero line.

    Returns
    -------
    matplotlib.figure.Figure
    """
    fitted = _clean(fitted)
    resid = _clean(residuals)
    if fitted.size != resid.size:
        raise ValueError(f"Fitted and residual lengths differ ({fitted.size} vs {resid.size})")
    fig, ax = plt.subplots(figsize=(7, 5))
    ax.scatter(fitted, resid, color="blue", s=18)
    ax.axhline(0, color="red", linestyle="--")
    ax.set_xlabel("Fitted Values")
    ax.set_ylabel("Residuals")
    ax.set_title(title)
    return fig


def residual_tests(residuals: Sequence[float],
                   fitted: Sequence[float],
                   significance_level: float = 0.05) -> List[ResidualTestResult]:
    """
    Test the normality and constant-variance assumptions of the residuals.

    Parameters
    ----------
    residuals : Sequence[float]
        Response residuals of a fitted model
    fitted : Sequence[float]
        Fitted values on the same rows
    significance_level : float, default=0.05
        Level used by ResidualTestResult.rejects_null

    Returns
    -------
    List[ResidualTestResult]
        Jarque-Bera (normality) and Breusch-Pagan against the fitted values
        (heteroscedasticity). A test that cannot be computed on the given
        residuals is left out and logged.
    """
    resid = _clean(residuals)
    fitted = _clean(fitted)
    results: List[ResidualTestResult] = []

    jb_stat, jb_pvalue, _, _ = jarque_bera(resid)
    results.append(ResidualTestResult(
        test_name="Jarque-Bera",
        statistic=float(jb_stat),
        p_value=float(jb_pvalue),
        null_hypothesis="normally distributed residuals",
        significance_level=significance_level,
    ))

    if np.ptp(fitted) > 0 and resid.size > 2:
        lm_stat, lm_pvalue, _, _ = het_breuschpagan(resid, sm.add_constant(fitted, has_constant="add"))
        results.append(ResidualTestResult(
            test_name="Breusch-Pagan",
            statistic=float(lm_stat),
            p_value=float(lm_pvalue),
            null_hypothesis="constant residual variance",
            significance_level=significance_level,
        ))
    else:
        logger.warning("Breusch-Pagan test skipped: fitted values are constant or too few residuals")

    return results
