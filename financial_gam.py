#!/usr/bin/env python3
"""
Generalized additive model analysis of the U.S. financial account balance.

Usage
-----
    python financial_gam.py --help
    python financial_gam.py
    python financial_gam.py --data data/FinanceData.csv --figures-dir figures

The code is organized in financial_gam_src/:
- config_utils.py: Configuration management
- data_utils.py: Data loading
- parsing_utils.py: CLI argument parsing
- split_utils.py: Train/validation/test partitioning
- modeling_utils.py: GAM fitting and summaries
- metrics_utils.py: Evaluation metrics
- plotting_utils.py: Visualization functions
- diagnostics_utils.py: Residual diagnostics
- file_utils.py: File operations
- main.py: Main entry point
"""

from financial_gam_src.main import main

if __name__ == "__main__":
    main()
