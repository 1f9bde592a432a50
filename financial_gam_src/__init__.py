# financial_gam_src/__init__.py

"""
Financial GAM - additive-model analysis of the U.S. financial account balance

Key Components
--------------
- config_utils: GamConfig, JSON configuration file and CLI override support
- data_utils: Dataset loading and validation
- parsing_utils: Command-line argument parsing
- split_utils: Seeded train/validation/test partitioning
- modeling_utils: Penalized regression-spline GAM fitting (statsmodels GLMGam)
- metrics_utils: RMSE/MAE evaluation on held-out rows
- plotting_utils: Exploration, fitted-curve and calibration charts
- diagnostics_utils: Residual plots and assumption tests
- file_utils: Figure and metrics CSV output, path utilities
- errors: Error taxonomy
- main: Main entry point and workflow orchestration

Usage
-----
    # Command-line usage
    python -m financial_gam_src.main --data data/FinanceData.csv

    # Programmatic usage
    from financial_gam_src import GamConfig, run_analysis
    result = run_analysis(GamConfig(data_path="data/FinanceData.csv"))
"""

__version__ = "1.0.0"

from .config_utils import GamConfig, build_config, initialize_config, load_config
from .data_utils import load_finance_data
from .errors import (
    ConfigurationError, DataLoadError, EvaluationError, FinancialGamError, FitError, InvalidSplitError
)
from .main import run_analysis
from .metrics_utils import evaluate_model, rmse
from .modeling_utils import ModelSpec, SmoothTerm, fit_gam
from .split_utils import partition_indices

__all__ = [
    "GamConfig",
    "build_config",
    "initialize_config",
    "load_config",
    "load_finance_data",
    "partition_indices",
    "ModelSpec",
    "SmoothTerm",
    "fit_gam",
    "evaluate_model",
    "rmse",
    "run_analysis",
    "FinancialGamError",
    "ConfigurationError",
    "DataLoadError",
    "InvalidSplitError",
    "FitError",
    "EvaluationError",
]
