# financial_gam_src/modeling_utils.py

"""
Penalized regression-spline GAM fitting for the financial account balance.

The additive model y = b0 + f_1(x_1) + ... + f_p(x_p) + e is fitted with
statsmodels' GLMGam (Gaussian family, identity link). Each f_i is a cubic
B-spline term of basis dimension k with a second-derivative penalty. The
spline basis drops its first B-spline so that the intercept column identifies
the model, which leaves k - 1 spline coefficients per term. The penalty
weight of every term is chosen by minimizing GCV (or AIC/BIC) unless the
caller fixes it.

Predictors are rescaled to the unit interval over a fixed domain before the
basis is built, so the penalty weights are comparable across series whose
units differ by orders of magnitude, and a model fitted on one subset can
predict every row of the dataset.
"""

import warnings
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
import logging

from scipy import stats
from statsmodels.gam.api import BSplines, GLMGam
from statsmodels.tools.sm_exceptions import ConvergenceWarning, PerfectSeparationError

from .errors import EvaluationError, FitError

logger = logging.getLogger(__name__)

SPLINE_DEGREE = 3
DEFAULT_BASIS_DIM = 10
MIN_BASIS_DIM = SPLINE_DEGREE + 1
INITIAL_PENALTY = 1.0
# bounds on log(alpha) for the penalty search
LOG_PENALTY_BOUNDS = (-25.0, 25.0)


@dataclass(frozen=True)
class SmoothTerm:
    """One smooth term s(predictor, k=basis_dim); None means the default k."""

    predictor: str
    basis_dim: Optional[int] = None

    @property
    def k(self) -> int:
        return self.basis_dim if self.basis_dim is not None else DEFAULT_BASIS_DIM

    @property
    def n_coef(self) -> int:
        """Spline coefficients the term adds next to the intercept."""
        return self.k - 1

    def label(self) -> str:
        if self.basis_dim is None:
            return f"s({self.predictor})"
        return f"s({self.predictor}, k={self.basis_dim})"


@dataclass
class ModelSpec:
    """Response plus an ordered list of smooth terms."""

    name: str
    response: str
    terms: List[SmoothTerm]

    @property
    def predictors(self) -> List[str]:
        return [t.predictor for t in self.terms]

    @property
    def formula(self) -> str:
        return f"{self.response} ~ " + " + ".join(t.label() for t in self.terms)

    @property
    def n_coef(self) -> int:
        """Intercept plus every spline coefficient."""
        return 1 + sum(t.n_coef for t in self.terms)

    @classmethod
    def from_predictors(cls,
                        name: str,
                        response: str,
                        predictors: Sequence[str],
                        basis_dims: Optional[Mapping[str, int]] = None,
                        default_basis_dim: Optional[int] = None) -> "ModelSpec":
        """
        Build a spec with one smooth term per predictor.

        Parameters
        ----------
        name : str
            Label used in logs, summaries and metrics rows
        response : str
            Response column
        predictors : Sequence[str]
            Predictor columns, in term order
        basis_dims : Mapping[str, int], optional
            Per-predictor basis dimensions; predictors not listed use
            default_basis_dim
        default_basis_dim : int, optional
            Basis dimension for unlisted predictors; None keeps the library
            default of 10

        Returns
        -------
        ModelSpec
        """
        basis_dims = basis_dims or {}
        terms = [SmoothTerm(p, basis_dims.get(p, default_basis_dim)) for p in predictors]
        return cls(name=name, response=response, terms=terms)


@dataclass
class TermSummary:
    """Approximate significance of one smooth term."""

    predictor: str
    basis_dim: int
    edf: float
    chi_sq: float
    p_value: float


@dataclass
class GamSummary:
    """Fit statistics of a GAM, in the spirit of an mgcv summary."""

    model_name: str
    formula: str
    n_obs: int
    intercept: float
    intercept_se: float
    terms: List[TermSummary]
    deviance_explained: float
    r_squared_adj: float
    gcv: float
    aic: float
    penalty_weights: Dict[str, float] = field(default_factory=dict)

    @property
    def total_edf(self) -> float:
        return 1.0 + sum(t.edf for t in self.terms)

    def terms_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "term": [f"s({t.predictor})" for t in self.terms],
            "k": [t.basis_dim for t in self.terms],
            "edf": [t.edf for t in self.terms],
            "Chi.sq": [t.chi_sq for t in self.terms],
            "p-value": [t.p_value for t in self.terms],
        })


@dataclass
class GamEstimates:
    """Coefficients and fit statistics of one penalized fit."""

    params: np.ndarray
    cov: np.ndarray
    edf: np.ndarray
    fitted: np.ndarray
    gcv: float
    aic: float

    @classmethod
    def from_results(cls, results) -> "GamEstimates":
        return cls(
            params=np.asarray(results.params, dtype=float),
            cov=np.asarray(results.cov_params(), dtype=float),
            edf=np.asarray(results.edf, dtype=float),
            fitted=np.asarray(results.fittedvalues, dtype=float),
            gcv=float(results.gcv),
            aic=float(results.aic),
        )


def _penalized_least_squares(model: GLMGam, penalty: np.ndarray) -> GamEstimates:
    """
    Solve the Gaussian penalized fit directly.

    GLMGam refuses to return results when the fitted values reproduce the
    response exactly; the penalized normal equations (X'X + 2S) b = X'y used
    by its PIRLS step still have a well-defined solution in that case.
    """
    X = np.asarray(model.exog, dtype=float)
    y = np.asarray(model.endog, dtype=float)
    n = len(y)
    xtx = X.T @ X
    inv_a = np.linalg.pinv(xtx + 2.0 * model.penal.penalty_matrix(alpha=penalty))
    params = inv_a @ (X.T @ y)
    edf = np.diag(inv_a @ xtx)
    fitted = X @ params
    rss = float(np.sum((y - fitted) ** 2))
    df_resid = n - float(edf.sum())
    scale = rss / df_resid if df_resid > 0 else 0.0
    gcv = scale / (1.0 - float(edf.sum()) / n) ** 2 if df_resid > 0 else float("nan")
    if rss > 0:
        aic = n * np.log(2.0 * np.pi * rss / n) + n + 2.0 * (float(edf.sum()) + 1.0)
    else:
        aic = float("nan")
    return GamEstimates(params=params, cov=scale * inv_a, edf=edf, fitted=fitted,
                        gcv=float(gcv), aic=float(aic))


class FittedGam:
    """A GAM fitted to one data subset."""

    def __init__(self,
                 spec: ModelSpec,
                 smoother: BSplines,
                 endog: np.ndarray,
                 estimates: GamEstimates,
                 domains: Dict[str, Tuple[float, float]],
                 term_slices: List[slice],
                 penalty_weights: np.ndarray,
                 results=None):
        self.spec = spec
        self.smoother = smoother
        self.endog = np.asarray(endog, dtype=float)
        self.estimates = estimates
        self.domains = domains
        self.term_slices = term_slices
        self.penalty_weights = np.asarray(penalty_weights, dtype=float)
        # statsmodels results; None when the fit reproduced the response exactly
        self.results = results

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def n_obs(self) -> int:
        return int(self.endog.shape[0])

    @property
    def fitted_values(self) -> np.ndarray:
        return self.estimates.fitted

    @property
    def residuals(self) -> np.ndarray:
        """Response residuals (observed minus fitted) on the fitting rows."""
        return self.endog - self.fitted_values

    def _scaled_predictors(self, newdata: pd.DataFrame) -> np.ndarray:
        missing = [p for p in self.spec.predictors if p not in newdata.columns]
        if missing:
            raise EvaluationError(
                f"Model '{self.name}' needs predictor column(s) {missing} for prediction",
                model_name=self.name, column=missing[0],
            )
        cols = []
        for p in self.spec.predictors:
            lo, hi = self.domains[p]
            x = pd.to_numeric(newdata[p], errors="coerce").to_numpy(dtype=float)
            if not np.all(np.isfinite(x)):
                raise EvaluationError(
                    f"Predictor column '{p}' has non-finite values; model '{self.name}' cannot predict them",
                    model_name=self.name, column=p,
                )
            z = (x - lo) / (hi - lo)
            n_out = int(np.sum((z < 0.0) | (z > 1.0)))
            if n_out:
                logger.debug("Clamping %d value(s) of %s to the fitted range [%g, %g]", n_out, p, lo, hi)
            cols.append(np.clip(z, 0.0, 1.0))
        return np.column_stack(cols)

    def predict(self, newdata: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray]:
        """
        Predict the response and its standard error for each row of newdata.

        Returns
        -------
        Tuple[np.ndarray, np.ndarray]
            (fit, se) arrays of length len(newdata)
        """
        if len(newdata) == 0:
            return np.empty(0), np.empty(0)
        x = self._scaled_predictors(newdata)
        X = np.column_stack([np.ones(x.shape[0]), self.smoother.transform(x)])
        fit = X @ self.estimates.params
        var = np.einsum("ij,jk,ik->i", X, self.estimates.cov, X)
        return fit, np.sqrt(np.clip(var, 0.0, None))

    def summary(self) -> GamSummary:
        """Compute term significance and variance explained."""
        params = self.estimates.params
        cov = self.estimates.cov
        edf = self.estimates.edf

        terms: List[TermSummary] = []
        for term, sl in zip(self.spec.terms, self.term_slices):
            b = params[sl]
            v = cov[sl, sl]
            if np.any(v):
                # Wald statistic on the term's coefficients
                chi_sq = float(b @ np.linalg.pinv(v) @ b)
            else:
                # exact fit: any nonzero coefficient is known without error
                chi_sq = float("inf") if np.any(b) else 0.0
            rank = max(1, int(np.linalg.matrix_rank(v)))
            terms.append(TermSummary(
                predictor=term.predictor,
                basis_dim=term.k,
                edf=float(edf[sl].sum()),
                chi_sq=chi_sq,
                p_value=float(stats.chi2.sf(chi_sq, rank)),
            ))

        y = self.endog
        n = len(y)
        dev = float(np.sum(self.residuals ** 2))
        null_dev = float(np.sum((y - y.mean()) ** 2))
        dev_explained = 1.0 - dev / null_dev if null_dev > 0 else float("nan")
        df_resid = n - float(edf.sum())
        if null_dev > 0 and df_resid > 0 and n > 1:
            r2_adj = 1.0 - (dev / df_resid) / (null_dev / (n - 1))
        else:
            r2_adj = float("nan")

        return GamSummary(
            model_name=self.name,
            formula=self.spec.formula,
            n_obs=n,
            intercept=float(params[0]),
            intercept_se=float(np.sqrt(max(cov[0, 0], 0.0))),
            terms=terms,
            deviance_explained=dev_explained,
            r_squared_adj=r2_adj,
            gcv=self.estimates.gcv,
            aic=self.estimates.aic,
            penalty_weights=dict(zip(self.spec.predictors, self.penalty_weights.tolist())),
        )


def _validate_fit_inputs(data: pd.DataFrame, spec: ModelSpec) -> None:
    if not spec.terms:
        raise FitError(f"Model '{spec.name}' has no smooth terms", model_name=spec.name)

    missing = [c for c in [spec.response] + spec.predictors if c not in data.columns]
    if missing:
        raise FitError(f"Model '{spec.name}': data lacks column(s) {missing}",
                       model_name=spec.name, predictor=missing[0])
    if len(data) == 0:
        raise FitError(f"Model '{spec.name}': no rows to fit", model_name=spec.name)

    for col in [spec.response] + spec.predictors:
        values = pd.to_numeric(data[col], errors="coerce").to_numpy(dtype=float)
        if not np.all(np.isfinite(values)):
            raise FitError(f"Model '{spec.name}': column '{col}' has missing or non-finite values",
                           model_name=spec.name, predictor=col)

    for term in spec.terms:
        k = term.k
        if k < MIN_BASIS_DIM:
            raise FitError(
                f"Model '{spec.name}': basis dimension k={k} for {term.predictor} is below {MIN_BASIS_DIM}",
                model_name=spec.name, predictor=term.predictor,
            )
        n_unique = int(data[term.predictor].nunique())
        if n_unique < 2:
            raise FitError(
                f"Model '{spec.name}': {term.predictor} has {n_unique} distinct value(s); a smooth term needs more",
                model_name=spec.name, predictor=term.predictor,
            )
        if k > n_unique:
            raise FitError(
                f"Model '{spec.name}': {term.predictor} has fewer unique values ({n_unique}) "
                f"than the basis dimension k={k}",
                model_name=spec.name, predictor=term.predictor,
            )

    if spec.n_coef > len(data):
        raise FitError(
            f"Model '{spec.name}' has more coefficients ({spec.n_coef}) than rows ({len(data)})",
            model_name=spec.name,
        )


def _select_penalty(endog: np.ndarray,
                    exog: np.ndarray,
                    smoother: BSplines,
                    criterion: str,
                    model_name: str) -> np.ndarray:
    n_terms = len(smoother.smoothers)
    start = np.full(n_terms, INITIAL_PENALTY)
    search = GLMGam(endog, exog=exog, smoother=smoother, alpha=start)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            # select_penweight reads the scale of a previous fit
            search.fit()
            penalty, _, _ = search.select_penweight(
                criterion=criterion,
                start_params=start,
                method="minimize",
                bounds=[LOG_PENALTY_BOUNDS] * n_terms,
            )
    except PerfectSeparationError:
        logger.debug("'%s' reproduces the response exactly; keeping penalty weights %s", model_name, start)
        return start
    logger.debug("Selected penalty weights for '%s' by %s: %s", model_name, criterion, penalty)
    return np.asarray(penalty, dtype=float)


def fit_gam(data: pd.DataFrame,
            spec: ModelSpec,
            bounds: Optional[Mapping[str, Tuple[float, float]]] = None,
            criterion: str = "gcv",
            alpha: Optional[Sequence[float]] = None) -> FittedGam:
    """
    Fit an additive penalized-regression-spline model.

    Parameters
    ----------
    data : pd.DataFrame
        Rows to fit on; must contain the response and every predictor
    spec : ModelSpec
        Response and smooth terms
    bounds : Mapping[str, Tuple[float, float]], optional
        Domain of each predictor (typically the full-dataset range). The
        domain is widened to cover the fitting rows; defaults to their range.
    criterion : str, default="gcv"
        Criterion minimized when selecting penalty weights ('gcv', 'aic', 'bic')
    alpha : Sequence[float], optional
        Fixed penalty weight per term; skips the automatic selection

    Returns
    -------
    FittedGam

    Raises
    ------
    FitError
        For missing columns, too few distinct predictor values for the basis
        dimension, more coefficients than rows, non-convergence or numerical
        failure inside the fitting library.
    """
    _validate_fit_inputs(data, spec)
    bounds = bounds or {}

    domains: Dict[str, Tuple[float, float]] = {}
    scaled = []
    for p in spec.predictors:
        x = data[p].to_numpy(dtype=float)
        lo, hi = bounds.get(p, (float(x.min()), float(x.max())))
        lo, hi = min(float(lo), float(x.min())), max(float(hi), float(x.max()))
        domains[p] = (lo, hi)
        scaled.append(np.clip((x - lo) / (hi - lo), 0.0, 1.0))
    x_smooth = np.column_stack(scaled)
    endog = data[spec.response].to_numpy(dtype=float)
    exog = np.ones((len(data), 1))
    n_terms = len(spec.terms)

    logger.info("Fitting GAM '%s': %s (n=%d)", spec.name, spec.formula, len(data))
    results = None
    caught = []
    try:
        smoother = BSplines(
            x_smooth,
            df=[t.k for t in spec.terms],
            degree=[SPLINE_DEGREE] * n_terms,
            variable_names=spec.predictors,
            knot_kwds=[{"lower_bound": 0.0, "upper_bound": 1.0} for _ in spec.terms],
        )

        if alpha is None:
            penalty = _select_penalty(endog, exog, smoother, criterion, spec.name)
        else:
            penalty = np.broadcast_to(np.asarray(alpha, dtype=float), (n_terms,)).copy()

        model = GLMGam(endog, exog=exog, smoother=smoother, alpha=penalty)
        try:
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always", ConvergenceWarning)
                results = model.fit()
            estimates = GamEstimates.from_results(results)
        except PerfectSeparationError:
            logger.info("Model '%s' reproduces the response exactly", spec.name)
            estimates = _penalized_least_squares(model, penalty)
    except (np.linalg.LinAlgError, ValueError, ZeroDivisionError, FloatingPointError) as e:
        raise FitError(f"Fitting model '{spec.name}' failed: {e}", model_name=spec.name) from e

    for w in caught:
        if issubclass(w.category, ConvergenceWarning):
            raise FitError(f"Model '{spec.name}' did not converge: {w.message}", model_name=spec.name)
        logger.debug("Warning while fitting '%s': %s", spec.name, w.message)

    term_slices: List[slice] = []
    start = 1
    for univariate in smoother.smoothers:
        width = univariate.basis.shape[1]
        term_slices.append(slice(start, start + width))
        start += width
    if start != len(estimates.params) or start != spec.n_coef:
        raise FitError(f"Model '{spec.name}': unexpected coefficient layout", model_name=spec.name)

    return FittedGam(spec, smoother, endog, estimates, domains, term_slices, penalty, results=results)


def _significance_code(p: float) -> str:
    if not np.isfinite(p):
        return ""
    if p < 0.001:
        return "***"
    if p < 0.01:
        return "**"
    if p < 0.05:
        return "*"
    if p < 0.1:
        return "."
    return ""


def format_summary(summary: GamSummary) -> str:
    """Render a GamSummary as a plain-text report."""
    table = summary.terms_frame()
    table["signif"] = [_significance_code(p) for p in table["p-value"]]
    table["p-value"] = [f"{p:.4g}" if p >= 1e-4 else "<1e-4" for p in table["p-value"]]
    lines = [
        f"Model: {summary.model_name}",
        f"Formula: {summary.formula}",
        "",
        "Parametric coefficients:",
        f"  (Intercept)  estimate={summary.intercept:.6g}  se={summary.intercept_se:.6g}",
        "",
        "Approximate significance of smooth terms:",
        table.to_string(index=False, float_format=lambda v: f"{v:.3f}"),
        "---",
        "Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1",
        "",
        f"R-sq.(adj) = {summary.r_squared_adj:.3f}   Deviance explained = {100.0 * summary.deviance_explained:.1f}%",
        f"GCV = {summary.gcv:.6g}   AIC = {summary.aic:.6g}   n = {summary.n_obs}",
    ]
    return "\n".join(lines)


def compare_models(models: Sequence[FittedGam]) -> pd.DataFrame:
    """
    Tabulate fit statistics of several models side by side.

    Returns
    -------
    pd.DataFrame
        One row per model with columns model, n, edf, deviance_explained,
        r_squared_adj, gcv, aic.
    """
    rows = []
    for m in models:
        s = m.summary()
        rows.append({
            "model": s.model_name,
            "n": s.n_obs,
            "edf": s.total_edf,
            "deviance_explained": s.deviance_explained,
            "r_squared_adj": s.r_squared_adj,
            "gcv": s.gcv,
            "aic": s.aic,
        })
    return pd.DataFrame(rows, columns=["model", "n", "edf", "deviance_explained", "r_squared_adj", "gcv", "aic"])
