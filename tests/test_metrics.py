from pathlib import Path

import numpy as np
import pandas as pd

import pytest

from financial_gam_src.errors import EvaluationError
from financial_gam_src.file_utils import METRICS_HEADER, append_metrics_csv_row
from financial_gam_src.metrics_utils import evaluate_model, mae, rmse
from financial_gam_src.modeling_utils import ModelSpec, fit_gam


def test_rmse_known_value():
    assert rmse([1.0, 2.0], [2.0, 4.0]) == pytest.approx(np.sqrt(2.5))
    assert mae([1.0, 2.0], [2.0, 4.0]) == pytest.approx(1.5)


def test_rmse_zero_iff_exact():
    y = np.array([3.0, -1.0, 7.5])
    assert rmse(y, y) == 0.0
    assert rmse(y, y + np.array([0.0, 0.0, 1e-9])) > 0.0


def test_rmse_non_negative():
    rng = np.random.default_rng(9)
    for _ in range(20):
        a, b = rng.normal(size=10), rng.normal(size=10)
        assert rmse(a, b) >= 0.0


@pytest.mark.parametrize("y_true,y_pred", [
    ([], []),
    ([1.0, 2.0], [1.0]),
    ([1.0, np.nan], [1.0, 2.0]),
    ([1.0, 2.0], [1.0, np.inf]),
])
def test_rmse_invalid_inputs(y_true, y_pred):
    with pytest.raises(EvaluationError):
        rmse(y_true, y_pred)


@pytest.fixture(scope="module")
def small_model():
    rng = np.random.default_rng(5)
    x = rng.uniform(0.0, 1.0, 50)
    df = pd.DataFrame({"x": x, "y": np.sin(3 * x) + rng.normal(0.0, 0.05, 50)})
    return fit_gam(df, ModelSpec.from_predictors("sine", "y", ["x"], default_basis_dim=6)), df


def test_evaluate_model(small_model):
    model, df = small_model
    result = evaluate_model(model, df.iloc[:10], "validation")
    assert result.model_name == "sine"
    assert result.subset == "validation"
    assert result.n == 10
    assert 0.0 <= result.rmse < 0.2
    assert result.mae <= result.rmse
    assert result.to_dict()["rmse"] == result.rmse


def test_evaluate_model_empty_subset(small_model):
    model, df = small_model
    with pytest.raises(EvaluationError, match="empty"):
        evaluate_model(model, df.iloc[:0], "test")


def test_evaluate_model_missing_response(small_model):
    model, df = small_model
    with pytest.raises(EvaluationError) as exc:
        evaluate_model(model, df[["x"]], "test")
    assert exc.value.column == "y"


def test_metrics_csv_header_written_once(tmp_path: Path):
    csv_path = tmp_path / "out" / "metrics.csv"
    row = {"model": "tuned", "subset": "test", "n": 20, "rmse": 1.5, "mae": 1.2,
           "seed": 123, "formula": "y ~ s(x)", "extra": "ignored"}
    append_metrics_csv_row(csv_path, row)
    append_metrics_csv_row(csv_path, {**row, "subset": "validation"})

    df = pd.read_csv(csv_path)
    assert list(df.columns) == METRICS_HEADER
    assert list(df["subset"]) == ["test", "validation"]


def test_metrics_csv_skipped_without_path():
    append_metrics_csv_row(None, {"model": "tuned"})
