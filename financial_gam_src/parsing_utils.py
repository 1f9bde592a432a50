# financial_gam_src/parsing_utils.py

from typing import Dict, Tuple
import logging

logger = logging.getLogger(__name__)


def parse_split_ratios(s: str) -> Tuple[float, float, float]:
    """
    Parse a CLI split ratio argument like '0.6,0.2,0.2' into a float triple.

    Parameters
    ----------
    s : str
        Comma-separated train, validation and test fractions

    Returns
    -------
    Tuple[float, float, float]
        (train, validation, test) fractions as given; range checks are left
        to the partitioner

    Raises
    ------
    ValueError
        If the text does not contain exactly three numbers

    Examples
    --------
    >>> parse_split_ratios("0.6,0.2,0.2")
    (0.6, 0.2, 0.2)
    >>> parse_split_ratios(" 0.7, 0.15 ,0.15 ")
    (0.7, 0.15, 0.15)
    """
    parts = [x.strip() for x in (s or "").split(",") if x.strip() != ""]
    if len(parts) != 3:
        raise ValueError(f"Split ratios must be three comma-separated numbers, got '{s}'")
    try:
        train, validation, test = (float(x) for x in parts)
    except ValueError as e:
        raise ValueError(f"Split ratios must be numeric, got '{s}'") from e
    return train, validation, test


def parse_basis_dims(s: str) -> Dict[str, int]:
    """
    Parse a CLI basis dimension argument like 'Exports=6,Imports=9'.

    Parameters
    ----------
    s : str
        Comma-separated predictor=k pairs

    Returns
    -------
    Dict[str, int]
        Mapping from predictor name to basis dimension

    Raises
    ------
    ValueError
        If a pair is not of the form name=integer

    Examples
    --------
    >>> parse_basis_dims("Exports=6,Imports=9")
    {'Exports': 6, 'Imports': 9}
    """
    dims: Dict[str, int] = {}
    for item in (s or "").split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Basis dimension entry must look like 'Predictor=k', got '{item}'")
        try:
            dims[name.strip()] = int(value.strip())
        except ValueError as e:
            raise ValueError(f"Basis dimension for '{name.strip()}' must be an integer, got '{value.strip()}'") from e
    return dims


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.
    
    Parameters
    ----------
    log_level : str
        Logging level to validate
        
    Returns
    -------
    str
        Validated logging level
        
    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
