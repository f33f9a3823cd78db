# =============================================================================
# Package: Regkit
# Purpose: Expose core classes and functions for multi-response OLS fitting,
#          significance filtering, equation rendering, diagnostics and export
#          in a unified API.
# =============================================================================

"""
Regkit API

This package provides:
  - DataManager for validating a numeric table and serving complete-case frames.
  - OLS models with coefficient and model-level inference.
  - Significance filters for models (F-test) and coefficients (t-test).
  - Equation rendering and parsing for the significant coefficients.
  - Breusch–Pagan heteroscedasticity testing and the sensitivity table.
  - Segment for running the whole pipeline over many responses.
  - ExportManager and format handlers for writing results to disk.
  - AnalysisConfig and load_config for YAML-backed settings.

Importing * from this package will provide all top-level modules and classes.
"""

__version__ = '0.1.0'

from .errors import *
from .config import *
from .data import *
from .report import *
from .test import *
from .testset import *
from .model import *
from .equation import *
from .sensitivity import *
from .export import *
from .segment import *
