import json
from pathlib import Path

import pandas as pd

import pytest

from financial_gam_src import main as gam_main
from financial_gam_src.config_utils import GamConfig
from financial_gam_src.errors import DataLoadError


def _fast_config(data_path: Path, out_dir: Path, **overrides) -> GamConfig:
    # smaller default k keeps the seven-term candidate fit quick
    fields = dict(
        data_path=str(data_path),
        figures_dir=str(out_dir / "figures"),
        metrics_csv=str(out_dir / "metrics.csv"),
        default_basis_dim=5,
        grid_points=50,
    )
    fields.update(overrides)
    config = GamConfig(**fields)
    config.validate()
    return config


def test_run_analysis_standard_holdout(finance_csv: Path, tmp_path: Path, capsys: pytest.CaptureFixture):
    config = _fast_config(finance_csv, tmp_path)
    result = gam_main.run_analysis(config, tmp_path)

    assert result.split.sizes == (72, 24, 24)
    assert list(result.candidates) == ["full", "reduced", "final"]
    assert list(result.tuned_models) == ["train"]
    assert [e.subset for e in result.evaluations] == ["validation", "test"]
    assert all(e.rmse >= 0 for e in result.evaluations)
    assert result.evaluation("test").n == 24
    assert set(result.curve_models) == {"Exports", "Imports", "DirectPortfolioLiabilities"}
    assert {t.test_name for t in result.residual_tests} == {"Jarque-Bera", "Breusch-Pagan"}

    names = {p.name for p in result.figures}
    assert "actual_vs_predicted.png" in names
    assert "residual_qq.png" in names and "residuals_vs_fitted.png" in names
    assert "curve_Exports.png" in names and "scatter_Imports.png" in names
    assert all(p.exists() for p in result.figures)

    metrics = pd.read_csv(tmp_path / "metrics.csv")
    assert list(metrics["subset"]) == ["validation", "test"]
    assert set(metrics["seed"]) == {123}

    out = capsys.readouterr().out
    assert "Column names:" in out
    assert "Training set size: 72" in out
    assert "Validation RMSE:" in out and "Test RMSE:" in out
    assert "Analysis complete!" in out


def test_run_analysis_refit_on_holdout(finance_csv: Path, tmp_path: Path):
    config = _fast_config(finance_csv, tmp_path, metrics_csv=None, refit_on_holdout=True)
    result = gam_main.run_analysis(config, tmp_path)

    assert list(result.tuned_models) == ["validation", "test"]
    assert result.tuned_models["test"].n_obs == 24
    assert result.curve_models["Exports"].n_obs == 24
    assert not (tmp_path / "metrics.csv").exists()


def test_run_analysis_missing_data(tmp_path: Path):
    config = _fast_config(tmp_path / "missing.csv", tmp_path)
    with pytest.raises(DataLoadError):
        gam_main.run_analysis(config, tmp_path)


def test_main_exits_with_status_1_on_workflow_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as exc:
        gam_main.main(["--data", "missing.csv", "--log-level", "ERROR"])
    assert exc.value.code == 1


def test_main_uses_config_file_and_flags(finance_csv: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    cfg = tmp_path / "gam.json"
    cfg.write_text(json.dumps({"model": {"default_basis_dim": 5}, "plots": {"grid_points": 20}}))
    captured = {}

    def _fake_run(config, base_dir):
        captured["config"] = config
        captured["base_dir"] = base_dir

    monkeypatch.setattr(gam_main, "run_analysis", _fake_run)
    monkeypatch.chdir(tmp_path)
    gam_main.main(["--config", str(cfg), "--data", str(finance_csv), "--seed", "5", "--refit-on-holdout"])

    config = captured["config"]
    assert config.default_basis_dim == 5
    assert config.grid_points == 20
    assert config.seed == 5
    assert config.refit_on_holdout is True
    assert captured["base_dir"] == Path.cwd()


def test_cli_parser_defaults_leave_config_in_charge():
    args = gam_main.setup_cli_parser().parse_args([])
    assert args.seed is None
    assert args.refit_on_holdout is None
    assert args.log_level == "INFO"


def test_run_analysis_with_default_model_settings(make_finance_frame, tmp_path: Path):
    path = tmp_path / "FinanceData.csv"
    make_finance_frame(n=150).to_csv(path, index=False)
    config = GamConfig(data_path=str(path), figures_dir=str(tmp_path / "figures"))
    config.validate()
    result = gam_main.run_analysis(config, tmp_path)

    assert result.split.sizes == (90, 30, 30)
    full = result.candidates["full"]
    assert all(t.k == 10 for t in full.spec.terms)
    assert full.estimates.params.shape == (1 + 7 * 9,)
    assert [t.k for t in result.tuned_models["train"].spec.terms] == [6, 9, 4]
    assert [e.subset for e in result.evaluations] == ["validation", "test"]
    assert all(e.rmse >= 0 for e in result.evaluations)
    assert all(p.exists() for p in result.figures)


@pytest.mark.parametrize("refit, rows", [(False, "training"), (True, "test")])
def test_curve_titles_name_the_fitting_rows(finance_csv: Path, tmp_path: Path,
                                            monkeypatch: pytest.MonkeyPatch, refit, rows):
    titles = []
    original = gam_main.plot_smooth_fit

    def _recording(data, curve, predictor, response, title=None):
        titles.append(title)
        return original(data, curve, predictor, response, title=title)

    monkeypatch.setattr(gam_main, "plot_smooth_fit", _recording)
    config = _fast_config(finance_csv, tmp_path, metrics_csv=None, refit_on_holdout=refit)
    gam_main.run_analysis(config, tmp_path)

    assert len(titles) == 3
    assert all(f"fit on {rows} rows; test rows shown" in t for t in titles)
