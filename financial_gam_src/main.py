# financial_gam_src/main.py

"""
Generalized additive model analysis of the U.S. financial account balance.

Purpose
-------
- Load the financial account dataset (FinNetLending plus seven predictor series)
- Plot each key predictor against the response for a first look
- Partition rows 60/20/20 into training, validation and test sets (seeded)
- Fit full, reduced and final smooth-term models on the training rows and
  compare term significance and variance explained
- Fit the tuned final model (per-predictor basis dimensions) and report
  validation and test RMSE
- Plot single-predictor fitted curves with 95% confidence bands, actual vs.
  predicted values over the whole dataset, and residual diagnostics

Configuration-Driven Workflow
-----------------------------
Seed, split ratios, candidate predictor sets and basis dimensions live in
GamConfig and may be overridden from a JSON file (--config) and CLI flags.
Results are printed to stdout; progress goes to the log on stderr.
"""

import argparse
import logging
import sys
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from statsmodels.tools.sm_exceptions import ConvergenceWarning

from .config_utils import SELECTION_CRITERIA, GamConfig, load_config
from .data_utils import dataset_bounds, load_finance_data
from .diagnostics_utils import (
    ResidualTestResult, plot_residual_qq, plot_residuals_vs_fitted, residual_tests
)
from .errors import FinancialGamError
from .file_utils import append_metrics_csv_row, ensure_dir, resolve_path, save_figure
from .metrics_utils import EvaluationResult, evaluate_model
from .modeling_utils import FittedGam, ModelSpec, compare_models, fit_gam, format_summary
from .parsing_utils import validate_log_level
from .plotting_utils import (
    RESPONSE_LABEL, humanize, plot_actual_vs_predicted, plot_predictor_scatter, plot_smooth_fit,
    smooth_curve_frame
)
from .split_utils import SplitIndices, partition_indices, split_dataset

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Everything one run produced, for callers that drive the workflow from Python."""

    split: SplitIndices
    candidates: Dict[str, FittedGam]
    tuned_models: Dict[str, FittedGam]
    curve_models: Dict[str, FittedGam]
    evaluations: List[EvaluationResult]
    residual_tests: List[ResidualTestResult]
    figures: List[Path] = field(default_factory=list)

    def evaluation(self, subset: str) -> EvaluationResult:
        for ev in self.evaluations:
            if ev.subset == subset:
                return ev
        raise KeyError(subset)


def _tuned_spec(config: GamConfig, name: str) -> ModelSpec:
    return ModelSpec.from_predictors(
        name, config.response, config.final_predictors,
        basis_dims=config.basis_dims, default_basis_dim=config.default_basis_dim,
    )


def run_analysis(config: GamConfig, base_dir: Optional[Path] = None) -> AnalysisResult:
    """
    Execute the complete analysis described by config.

    Parameters
    ----------
    config : GamConfig
        Validated run configuration
    base_dir : Path, optional
        Directory that relative paths in config are resolved against
        (defaults to the current working directory)

    Returns
    -------
    AnalysisResult

    Raises
    ------
    FinancialGamError
        Any loading, partitioning, fitting or evaluation failure. Nothing is
        retried; the first failure ends the run.

    Workflow
    --------
    1. Load the dataset and print its column names
    2. Save predictor vs. response scatterplots
    3. Partition rows and print the subset sizes
    4. Fit the candidate models on the training rows; print summaries and a comparison
    5. Fit the tuned final model and report validation and test RMSE
    6. Fit single-predictor curve models (on the training rows, or the test rows
       when refitting) and plot them over the test rows with confidence bands
    7. Plot actual vs. predicted values and residual diagnostics
    8. Append metrics rows when a metrics CSV is configured
    """
    base_dir = Path.cwd() if base_dir is None else Path(base_dir)
    data_path = resolve_path(config.data_path, base_dir)
    figures_dir = resolve_path(config.figures_dir, base_dir)
    metrics_csv_path = resolve_path(config.metrics_csv, base_dir) if config.metrics_csv else None
    ensure_dir(figures_dir)
    figures: List[Path] = []

    # 1. Data
    df = load_finance_data(data_path, config.required_columns)
    print("Column names:")
    print(list(df.columns))
    bounds = dataset_bounds(df, [c for c in config.required_columns if c != config.response])

    # 2. Exploration
    for predictor in config.exploration_predictors:
        fig = plot_predictor_scatter(df, predictor, config.response)
        figures.append(save_figure(fig, figures_dir / f"scatter_{predictor}.png"))

    # 3. Partition
    split = partition_indices(len(df), config.split_ratios, config.seed)
    train_df, val_df, test_df = split_dataset(df, split)
    print(f"Training set size: {len(train_df)}")
    print(f"Validation set size: {len(val_df)}")
    print(f"Test set size: {len(test_df)}")

    # 4. Variable selection on the training rows (library default k)
    candidates: Dict[str, FittedGam] = {}
    for name, predictors in config.candidate_models.items():
        spec = ModelSpec.from_predictors(name, config.response, predictors,
                                         default_basis_dim=config.default_basis_dim)
        model = fit_gam(train_df, spec, bounds=bounds, criterion=config.selection_criterion)
        candidates[name] = model
        print()
        print(format_summary(model.summary()))
    print()
    print("Candidate model comparison:")
    print(compare_models(list(candidates.values())).to_string(index=False))

    # 5. Tuned model
    evaluations: List[EvaluationResult] = []
    tuned_models: Dict[str, FittedGam] = {}
    if config.refit_on_holdout:
        logger.info("Refitting the tuned model separately on the validation and test rows")
        for subset, subset_df in (("validation", val_df), ("test", test_df)):
            model = fit_gam(subset_df, _tuned_spec(config, f"{subset}_tuned"),
                            bounds=bounds, criterion=config.selection_criterion)
            tuned_models[subset] = model
            print()
            print(format_summary(model.summary()))
            evaluations.append(evaluate_model(model, subset_df, subset))
        diagnostic_model = tuned_models["test"]
        curve_df, curve_rows = test_df, "test"
    else:
        model = fit_gam(train_df, _tuned_spec(config, "tuned"),
                        bounds=bounds, criterion=config.selection_criterion)
        tuned_models["train"] = model
        print()
        print(format_summary(model.summary()))
        evaluations.append(evaluate_model(model, val_df, "validation"))
        evaluations.append(evaluate_model(model, test_df, "test"))
        diagnostic_model = model
        curve_df, curve_rows = train_df, "training"

    for ev in evaluations:
        print(f"{ev.subset.capitalize()} RMSE: {ev.rmse}")

    # 6. Single-predictor curves: fitted on curve_df, drawn over the test rows
    curve_models: Dict[str, FittedGam] = {}
    for predictor in config.curve_predictors:
        spec = ModelSpec.from_predictors(
            f"curve_{predictor}", config.response, [predictor],
            basis_dims=config.basis_dims, default_basis_dim=config.default_basis_dim,
        )
        curve_model = fit_gam(curve_df, spec, bounds=bounds, criterion=config.selection_criterion)
        curve_models[predictor] = curve_model
        curve = smooth_curve_frame(curve_model, predictor, test_df,
                                   n_points=config.grid_points, z=config.confidence_z)
        title = f"{humanize(predictor)} vs. {RESPONSE_LABEL} (fit on {curve_rows} rows; test rows shown)"
        fig = plot_smooth_fit(test_df, curve, predictor, config.response, title=title)
        figures.append(save_figure(fig, figures_dir / f"curve_{predictor}.png"))

    # 7. Calibration and residual checks
    predicted, _ = diagnostic_model.predict(df)
    fig = plot_actual_vs_predicted(df[config.response].to_numpy(), predicted)
    figures.append(save_figure(fig, figures_dir / "actual_vs_predicted.png"))

    print("Creating plots to check model conditions...")
    residuals = diagnostic_model.residuals
    fitted = diagnostic_model.fitted_values
    figures.append(save_figure(plot_residual_qq(residuals), figures_dir / "residual_qq.png"))
    figures.append(save_figure(plot_residuals_vs_fitted(fitted, residuals),
                               figures_dir / "residuals_vs_fitted.png"))
    tests = residual_tests(residuals, fitted)
    for t in tests:
        print(t.interpretation)

    # 8. Metrics export
    if metrics_csv_path is not None:
        for ev in evaluations:
            row = ev.to_dict()
            row["model"] = row.pop("model_name")
            row["seed"] = config.seed
            row["formula"] = (tuned_models.get(ev.subset) or diagnostic_model).spec.formula
            append_metrics_csv_row(metrics_csv_path, row)
        logger.info("Appended %d metrics row(s) to %s", len(evaluations), metrics_csv_path)

    print("Analysis complete!")
    return AnalysisResult(
        split=split,
        candidates=candidates,
        tuned_models=tuned_models,
        curve_models=curve_models,
        evaluations=evaluations,
        residual_tests=tests,
        figures=figures,
    )


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser. Every flag is optional; a flag left unset
    falls back to the configuration file and then to the GamConfig default.
    """
    parser = argparse.ArgumentParser(
        description="GAM analysis of the U.S. financial account balance (statsmodels GLMGam)."
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Optional JSON configuration file."
    )
    parser.add_argument(
        "--data", type=str, default=None,
        help="Path to the dataset CSV (default: data/FinanceData.csv)."
    )
    parser.add_argument(
        "--figures-dir", type=str, default=None,
        help="Directory for saved figures (default: figures)."
    )
    parser.add_argument(
        "--metrics-csv", type=str, default=None,
        help="If provided, append evaluation metrics rows to this CSV."
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Seed for the random train/validation/test partition (default: 123)."
    )
    parser.add_argument(
        "--split-ratios", type=str, default=None,
        help="Comma-separated train,validation,test fractions (e.g., '0.6,0.2,0.2')."
    )
    parser.add_argument(
        "--basis-dims", type=str, default=None,
        help="Per-predictor basis dimensions for the tuned model (e.g., 'Exports=6,Imports=9')."
    )
    parser.add_argument(
        "--criterion", type=str, default=None, choices=list(SELECTION_CRITERIA),
        help="Criterion for selecting smoothing penalties (default: gcv)."
    )
    parser.add_argument(
        "--refit-on-holdout", action="store_true", default=None,
        help="Refit the tuned model on the validation and test rows instead of reusing the training fit."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )
    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")
        logging.getLogger("matplotlib").setLevel(logging.WARNING)


def main(argv: Optional[List[str]] = None) -> None:
    """
    Main entry point: parse flags, assemble the configuration and run the analysis.

    Exits with status 1 when the run fails with a workflow error.
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(args.log_level)
    except ValueError as e:
        parser.error(str(e))

    try:
        config = load_config(Path(args.config) if args.config else None, args)
        run_analysis(config, Path.cwd())
    except FinancialGamError as e:
        logger.error("%s: %s", type(e).__name__, e)
        sys.exit(1)


if __name__ == "__main__":
    main()
