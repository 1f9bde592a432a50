import numpy as np
import pandas as pd
from pathlib import Path

import pytest

from financial_gam_src.config_utils import ALL_PREDICTORS, RESPONSE_COLUMN, initialize_config


def _finance_frame(n: int = 120, seed: int = 7) -> pd.DataFrame:
    """Synthetic dataset with the real column layout and a smooth response."""
    rng = np.random.default_rng(seed)
    data = {
        "Exports": rng.uniform(100.0, 300.0, n),
        "Imports": rng.uniform(150.0, 400.0, n),
        "DirectPortfolioLiabilities": rng.uniform(-50.0, 250.0, n),
        "Period": np.arange(1, n + 1, dtype=float),
        "DirectInvestmentLiabilities": rng.uniform(20.0, 120.0, n),
        "ReserveAssets": rng.normal(0.0, 2.0, n),
        "DirectInvestmentAssets": rng.uniform(30.0, 150.0, n),
    }
    df = pd.DataFrame(data)
    df[RESPONSE_COLUMN] = (
        0.8 * df["Exports"]
        - 0.5 * df["Imports"]
        + 40.0 * np.sin(df["DirectPortfolioLiabilities"] / 60.0)
        + rng.normal(0.0, 5.0, n)
    )
    assert set(ALL_PREDICTORS) <= set(df.columns)
    return df


@pytest.fixture(autouse=True)
def _reset_config():
    initialize_config(None)
    yield
    initialize_config(None)


@pytest.fixture
def make_finance_frame():
    return _finance_frame


@pytest.fixture
def finance_csv(tmp_path: Path) -> Path:
    path = tmp_path / "FinanceData.csv"
    _finance_frame().to_csv(path, index=False)
    return path
