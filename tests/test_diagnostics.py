import numpy as np
from matplotlib.figure import Figure

import pytest

from financial_gam_src.diagnostics_utils import (
    plot_residual_qq, plot_residuals_vs_fitted, residual_tests
)


def test_residual_tests_on_well_behaved_residuals():
    rng = np.random.default_rng(0)
    fitted = np.linspace(0.0, 10.0, 200)
    resid = rng.normal(0.0, 1.0, 200)

    results = {r.test_name: r for r in residual_tests(resid, fitted)}
    assert set(results) == {"Jarque-Bera", "Breusch-Pagan"}
    for r in results.values():
        assert r.statistic >= 0
        assert 0.0 <= r.p_value <= 1.0


def test_breusch_pagan_flags_growing_variance():
    rng = np.random.default_rng(1)
    fitted = np.linspace(1.0, 10.0, 300)
    resid = rng.normal(0.0, 1.0, 300) * fitted

    results = {r.test_name: r for r in residual_tests(resid, fitted)}
    assert results["Breusch-Pagan"].rejects_null
    assert "rejected" in results["Breusch-Pagan"].interpretation


def test_jarque_bera_flags_skewed_residuals():
    rng = np.random.default_rng(2)
    resid = rng.exponential(1.0, 500)
    fitted = rng.uniform(0.0, 1.0, 500)

    results = {r.test_name: r for r in residual_tests(resid, fitted)}
    assert results["Jarque-Bera"].rejects_null


def test_constant_fitted_values_skip_breusch_pagan():
    resid = np.array([0.5, -0.2, 0.1, -0.4, 0.0])
    results = residual_tests(resid, np.full(5, 2.0))
    assert [r.test_name for r in results] == ["Jarque-Bera"]


def test_empty_residuals_rejected():
    with pytest.raises(ValueError):
        residual_tests([], [])


def test_residual_plots_return_figures():
    rng = np.random.default_rng(4)
    fitted = rng.uniform(0.0, 5.0, 50)
    resid = rng.normal(0.0, 1.0, 50)

    qq = plot_residual_qq(resid)
    rvf = plot_residuals_vs_fitted(fitted, resid)
    assert isinstance(qq, Figure) and isinstance(rvf, Figure)
    assert rvf.axes[0].get_xlabel() == "Fitted Values"


def test_residuals_vs_fitted_length_mismatch():
    with pytest.raises(ValueError, match="differ"):
        plot_residuals_vs_fitted([1.0, 2.0], [0.1])
