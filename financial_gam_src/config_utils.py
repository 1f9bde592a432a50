# financial_gam_src/config_utils.py

import argparse
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConfigurationError
from .modeling_utils import MIN_BASIS_DIM

logger = logging.getLogger(__name__)

RESPONSE_COLUMN = "FinNetLending"

ALL_PREDICTORS = [
    "Exports",
    "Imports",
    "DirectPortfolioLiabilities",
    "Period",
    "DirectInvestmentLiabilities",
    "ReserveAssets",
    "DirectInvestmentAssets",
]

SELECTION_CRITERIA = ("gcv", "aic", "bic")

# Dot-notation keys recognized in a JSON configuration file
KNOWN_KEYS = {
    "data.path",
    "data.response",
    "output.figures_dir",
    "output.metrics_csv",
    "split.seed",
    "split.ratios",
    "model.default_basis_dim",
    "model.basis_dims",
    "model.candidates",
    "model.selection_criterion",
    "model.refit_on_holdout",
    "plots.exploration_predictors",
    "plots.curve_predictors",
    "plots.grid_points",
    "plots.confidence_z",
}

# Loaded configuration file contents (nested dict), None when no file is used
config_data: Optional[Dict[str, Any]] = None


def _default_candidates() -> Dict[str, List[str]]:
    return {
        "full": list(ALL_PREDICTORS),
        "reduced": ["Exports", "Imports", "DirectInvestmentAssets", "DirectPortfolioLiabilities"],
        "final": ["Exports", "Imports", "DirectPortfolioLiabilities"],
    }


@dataclass
class GamConfig:
    """Run constants for the financial account GAM analysis."""

    # Input / output
    data_path: str = "data/FinanceData.csv"
    figures_dir: str = "figures"
    metrics_csv: Optional[str] = None
    response: str = RESPONSE_COLUMN

    # Partitioning
    seed: int = 123
    split_ratios: Tuple[float, float, float] = (0.6, 0.2, 0.2)

    # Model specification
    default_basis_dim: int = 10
    basis_dims: Dict[str, int] = field(default_factory=lambda: {
        "Exports": 6,
        "Imports": 9,
        "DirectPortfolioLiabilities": 4,
    })
    candidate_models: Dict[str, List[str]] = field(default_factory=_default_candidates)
    selection_criterion: str = "gcv"        # criterion for smoothing-penalty selection
    refit_on_holdout: bool = False          # refit tuned model on validation/test rows

    # Visualization
    exploration_predictors: List[str] = field(default_factory=lambda: [
        "Exports", "Imports", "DirectPortfolioLiabilities"
    ])
    curve_predictors: List[str] = field(default_factory=lambda: [
        "Exports", "Imports", "DirectPortfolioLiabilities"
    ])
    grid_points: int = 100
    confidence_z: float = 1.96

    @property
    def final_predictors(self) -> List[str]:
        """Predictors of the last candidate model, used for the tuned model."""
        if not self.candidate_models:
            return []
        return list(self.candidate_models[list(self.candidate_models)[-1]])

    @property
    def required_columns(self) -> List[str]:
        """Response plus every predictor referenced anywhere in the run."""
        cols = [self.response]
        for predictors in self.candidate_models.values():
            cols.extend(predictors)
        cols.extend(self.exploration_predictors)
        cols.extend(self.curve_predictors)
        return list(dict.fromkeys(cols))

    def validate(self) -> None:
        """
        Check the configuration for values the workflow cannot run with.

        Raises
        ------
        ConfigurationError
            If a value is out of range or inconsistent with another value.
        InvalidSplitError
            If the split ratios do not form a valid partition.
        """
        from .split_utils import validate_split_ratios

        validate_split_ratios(self.split_ratios)

        if not self.candidate_models:
            raise ConfigurationError("At least one candidate model is required.", key="model.candidates")
        for name, predictors in self.candidate_models.items():
            if not predictors:
                raise ConfigurationError(f"Candidate model '{name}' has no predictors.", key="model.candidates")

        for predictor, k in {**self.basis_dims, "<default>": self.default_basis_dim}.items():
            if isinstance(k, bool) or not isinstance(k, int) or k < MIN_BASIS_DIM:
                raise ConfigurationError(
                    f"Basis dimension for {predictor} must be an integer >= {MIN_BASIS_DIM}, got {k!r}.",
                    key="model.basis_dims",
                )

        if self.selection_criterion not in SELECTION_CRITERIA:
            raise ConfigurationError(
                f"Invalid selection criterion '{self.selection_criterion}'. Must be one of: {list(SELECTION_CRITERIA)}",
                key="model.selection_criterion",
            )

        if self.grid_points < 2:
            raise ConfigurationError(f"grid_points must be >= 2, got {self.grid_points}.", key="plots.grid_points")
        if self.confidence_z <= 0:
            raise ConfigurationError(f"confidence_z must be positive, got {self.confidence_z}.", key="plots.confidence_z")

        missing = [p for p in self.curve_predictors if p not in self.final_predictors]
        if missing:
            raise ConfigurationError(
                f"Curve predictors {missing} are not part of the final model {self.final_predictors}.",
                key="plots.curve_predictors",
            )


def _flatten_keys(data: Dict[str, Any], prefix: str = "") -> List[str]:
    keys = []
    for k, v in data.items():
        path = f"{prefix}{k}"
        if isinstance(v, dict) and path not in KNOWN_KEYS:
            keys.extend(_flatten_keys(v, path + "."))
        else:
            keys.append(path)
    return keys


def initialize_config(config_path: Optional[Path] = None) -> None:
    """
    Load an optional JSON configuration file into the module-level store.

    Without a path the store is cleared and every value falls back to the
    GamConfig defaults. Unknown keys are reported and ignored.

    Raises
    ------
    ConfigurationError
        If the file does not exist or is not a JSON object.
    """
    global config_data
    if config_path is None:
        config_data = None
        return

    path = Path(config_path)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        loaded = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Configuration file {path} is not valid JSON: {e}") from e
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a JSON object.")

    unknown = [k for k in _flatten_keys(loaded) if k not in KNOWN_KEYS]
    if unknown:
        logger.warning("Ignoring unknown configuration keys in %s: %s", path, unknown)

    config_data = loaded
    logger.info("Loaded configuration from %s", path)


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args is not None and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    if config_data:
        node: Any = config_data
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                node = None
                break
            node = node[part]
        if node is not None:
            return node

    # Third priority: Default value
    return default


def build_config(args: Optional[argparse.Namespace] = None) -> GamConfig:
    """
    Assemble a validated GamConfig from defaults, the loaded file and CLI arguments.

    Parameters
    ----------
    args : argparse.Namespace, optional
        Parsed CLI arguments; attributes left at None do not override.

    Returns
    -------
    GamConfig
        Validated configuration.
    """
    from .parsing_utils import parse_basis_dims, parse_split_ratios

    base = GamConfig()

    ratios = get_config_value("split.ratios", base.split_ratios, args, "split_ratios")
    if isinstance(ratios, str):
        try:
            ratios = parse_split_ratios(ratios)
        except ValueError as e:
            raise ConfigurationError(str(e), key="split.ratios") from e
    try:
        ratios = tuple(float(r) for r in ratios)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"split.ratios must be three numbers, got {ratios!r}", key="split.ratios") from e
    if len(ratios) != 3:
        raise ConfigurationError(f"split.ratios must be three numbers, got {ratios!r}", key="split.ratios")

    basis_dims = dict(get_config_value("model.basis_dims", base.basis_dims))
    cli_dims = getattr(args, "basis_dims", None) if args is not None else None
    if cli_dims:
        try:
            basis_dims.update(parse_basis_dims(cli_dims) if isinstance(cli_dims, str) else cli_dims)
        except ValueError as e:
            raise ConfigurationError(str(e), key="model.basis_dims") from e

    try:
        config = GamConfig(
            data_path=str(get_config_value("data.path", base.data_path, args, "data")),
            figures_dir=str(get_config_value("output.figures_dir", base.figures_dir, args, "figures_dir")),
            metrics_csv=get_config_value("output.metrics_csv", base.metrics_csv, args, "metrics_csv"),
            response=str(get_config_value("data.response", base.response)),
            seed=int(get_config_value("split.seed", base.seed, args, "seed")),
            split_ratios=ratios,
            default_basis_dim=get_config_value("model.default_basis_dim", base.default_basis_dim),
            basis_dims=basis_dims,
            candidate_models=dict(get_config_value("model.candidates", base.candidate_models)),
            selection_criterion=str(get_config_value(
                "model.selection_criterion", base.selection_criterion, args, "criterion")).lower(),
            refit_on_holdout=bool(get_config_value(
                "model.refit_on_holdout", base.refit_on_holdout, args, "refit_on_holdout")),
            exploration_predictors=list(get_config_value(
                "plots.exploration_predictors", base.exploration_predictors)),
            curve_predictors=list(get_config_value("plots.curve_predictors", base.curve_predictors)),
            grid_points=int(get_config_value("plots.grid_points", base.grid_points)),
            confidence_z=float(get_config_value("plots.confidence_z", base.confidence_z)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e

    config.validate()
    return config


def load_config(config_path: Optional[Path] = None, args: Optional[argparse.Namespace] = None) -> GamConfig:
    """Load the optional JSON file and return the validated GamConfig for a run."""
    initialize_config(config_path)
    return build_config(args)
