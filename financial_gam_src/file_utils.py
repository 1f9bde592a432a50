# financial_gam_src/file_utils.py

import csv
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

logger = logging.getLogger(__name__)

METRICS_HEADER = ["model", "subset", "n", "rmse", "mae", "seed", "formula"]


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    Parameters
    ----------
    path : Path
        Directory path to create
    """
    path.mkdir(parents=True, exist_ok=True)


def resolve_path(path_str: str, base_dir: Path) -> Path:
    """
    Resolve a path relative to a base directory unless it is absolute.

    Parameters
    ----------
    path_str : str
        Path as given on the command line or in the configuration
    base_dir : Path
        Directory that relative paths are anchored to

    Returns
    -------
    Path
        Absolute path
    """
    p = Path(path_str).expanduser()
    return p if p.is_absolute() else (base_dir / p).resolve()


def save_figure(fig, out_path: Path, dpi: int = 150) -> Path:
    """
    Write a figure to disk (parents created) and release it.

    Returns
    -------
    Path
        The written file
    """
    ensure_dir(out_path.parent)
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
    logger.info("Saved figure: %s", out_path)
    return out_path


def append_metrics_csv_row(csv_path: Optional[Path],
                           row: Dict[str, Any],
                           header: List[str] = METRICS_HEADER) -> None:
    """
    Append a single metrics row to CSV, creating header on first write.

    Parameters
    ----------
    csv_path : Optional[Path]
        Path to metrics CSV file (None to skip writing)
    row : Dict[str, Any]
        Dictionary containing metric values to write; keys outside the
        header are ignored
    header : List[str]
        List of column names for the CSV
    """
    if csv_path is None:
        return

    ensure_dir(csv_path.parent)
    exists = csv_path.exists() and csv_path.stat().st_size > 0
    with csv_path.open("a", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=header, extrasaction="ignore")
        if not exists:
            writer.writeheader()
        writer.writerow(row)
