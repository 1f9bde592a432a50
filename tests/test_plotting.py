from pathlib import Path

import numpy as np
import pandas as pd
from matplotlib.figure import Figure

import pytest

from financial_gam_src.file_utils import save_figure
from financial_gam_src.modeling_utils import ModelSpec, fit_gam
from financial_gam_src.plotting_utils import (
    humanize, plot_actual_vs_predicted, plot_predictor_scatter, plot_smooth_fit, smooth_curve_frame
)


@pytest.fixture(scope="module")
def finance_df():
    rng = np.random.default_rng(3)
    n = 80
    exports = rng.uniform(100.0, 300.0, n)
    imports = rng.uniform(150.0, 400.0, n)
    y = 0.01 * (exports - 200.0) ** 2 - 0.3 * imports + rng.normal(0.0, 3.0, n)
    return pd.DataFrame({"Exports": exports, "Imports": imports, "FinNetLending": y})


@pytest.fixture(scope="module")
def exports_model(finance_df):
    spec = ModelSpec.from_predictors("curve_Exports", "FinNetLending", ["Exports"], basis_dims={"Exports": 6})
    return fit_gam(finance_df, spec)


def test_curve_frame_band_ordering(exports_model, finance_df):
    curve = smooth_curve_frame(exports_model, "Exports", finance_df, n_points=100, z=1.96)

    assert list(curve.columns) == ["Exports", "fit", "se", "lower", "upper"]
    assert len(curve) == 100
    assert np.all(curve["lower"] <= curve["fit"])
    assert np.all(curve["fit"] <= curve["upper"])
    np.testing.assert_allclose(curve["upper"] - curve["fit"], 1.96 * curve["se"])


def test_curve_grid_spans_data_range(exports_model, finance_df):
    subset = finance_df.iloc[:20]
    curve = smooth_curve_frame(exports_model, "Exports", subset, n_points=25)
    assert curve["Exports"].iloc[0] == pytest.approx(subset["Exports"].min())
    assert curve["Exports"].iloc[-1] == pytest.approx(subset["Exports"].max())
    assert np.all(np.diff(curve["Exports"]) > 0)


def test_curve_frame_holds_other_predictors_at_median(finance_df):
    spec = ModelSpec.from_predictors("both", "FinNetLending", ["Exports", "Imports"], default_basis_dim=5)
    model = fit_gam(finance_df, spec)
    curve = smooth_curve_frame(model, "Exports", finance_df, n_points=10)

    grid = pd.DataFrame({"Exports": curve["Exports"], "Imports": finance_df["Imports"].median()})
    np.testing.assert_allclose(curve["fit"], model.predict(grid)[0])


def test_curve_frame_rejects_unknown_predictor(exports_model, finance_df):
    with pytest.raises(ValueError):
        smooth_curve_frame(exports_model, "Imports", finance_df)


def test_plot_functions_return_figures(exports_model, finance_df, tmp_path: Path):
    curve = smooth_curve_frame(exports_model, "Exports", finance_df)
    fit, _ = exports_model.predict(finance_df)

    figs = {
        "scatter": plot_predictor_scatter(finance_df, "Exports", "FinNetLending"),
        "curve": plot_smooth_fit(finance_df, curve, "Exports", "FinNetLending"),
        "calibration": plot_actual_vs_predicted(finance_df["FinNetLending"], fit),
    }
    for name, fig in figs.items():
        assert isinstance(fig, Figure)
        out = save_figure(fig, tmp_path / "figs" / f"{name}.png")
        assert out.exists() and out.stat().st_size > 0


def test_scatter_default_title():
    df = pd.DataFrame({"DirectPortfolioLiabilities": [1.0, 2.0], "FinNetLending": [3.0, 4.0]})
    fig = plot_predictor_scatter(df, "DirectPortfolioLiabilities", "FinNetLending")
    assert fig.axes[0].get_title() == "Direct Portfolio Liabilities vs. Financial Account Balance"


def test_humanize():
    assert humanize("FinNetLending") == "Fin Net Lending"
    assert humanize("Exports") == "Exports"
