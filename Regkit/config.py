# =============================================================================
# module: config.py
# Purpose: Default thresholds and YAML-backed analysis configuration
# Key Types/Classes: AnalysisConfig
# Key Functions: load_config
# Dependencies: dataclasses, pathlib, typing, yaml
# =============================================================================
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import yaml

# Significance level shared by the F-test, coefficient and Breusch–Pagan filters
DEFAULT_ALPHA = 0.05

# Decimal places used when rendering equations
DEFAULT_DECIMALS = 4

DEFAULT_N_JOBS = 1

# Label statsmodels assigns to the prepended column of ones
INTERCEPT_NAME = 'const'

SENSITIVITY_SCOPES = ('all', 'significant')


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Settings for one multi-response regression run.

    Parameters
    ----------
    predictors : tuple of str
        Ordered predictor column names shared by every model.
    responses : tuple of str
        Ordered response column names; one model is fitted per response.
    alpha_model : float, default 0.05
        Overall F-test threshold used by the model significance filter.
    alpha_coef : float, default 0.05
        Per-coefficient t-test threshold.
    alpha_het : float, default 0.05
        Breusch–Pagan threshold; p-values at or above it count as homoscedastic.
    decimals : int, default 4
        Rounding used by the equation renderer.
    n_jobs : int, default 1
        Worker threads used to fit responses.
    sensitivity_scope : {'all', 'significant'}, default 'significant'
        Which coefficients of a homoscedastic model feed the sensitivity table.
    show_progress : bool, default False
        Display a tqdm progress bar while fitting.
    """
    predictors: Tuple[str, ...] = field(default_factory=tuple)
    responses: Tuple[str, ...] = field(default_factory=tuple)
    alpha_model: float = DEFAULT_ALPHA
    alpha_coef: float = DEFAULT_ALPHA
    alpha_het: float = DEFAULT_ALPHA
    decimals: int = DEFAULT_DECIMALS
    n_jobs: int = DEFAULT_N_JOBS
    sensitivity_scope: str = 'significant'
    show_progress: bool = False

    def __post_init__(self):
        # Lists from YAML are frozen to tuples so the config stays hashable
        object.__setattr__(self, 'predictors', tuple(self.predictors))
        object.__setattr__(self, 'responses', tuple(self.responses))
        for name in ('alpha_model', 'alpha_coef', 'alpha_het'):
            value = getattr(self, name)
            if not 0 < value < 1:
                raise ValueError(f"{name} must lie in (0, 1), got {value}.")
        if self.decimals < 0:
            raise ValueError("decimals must be non-negative.")
        if self.n_jobs < 1:
            raise ValueError("n_jobs must be at least 1.")
        if self.sensitivity_scope not in SENSITIVITY_SCOPES:
            raise ValueError(f"sensitivity_scope must be one of {SENSITIVITY_SCOPES}")

    def to_dict(self) -> Dict[str, Any]:
        """Return the settings as plain Python types."""
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out['predictors'] = list(self.predictors)
        out['responses'] = list(self.responses)
        return out


def load_config(path: Union[str, Path], **overrides: Any) -> AnalysisConfig:
    """
    Load an AnalysisConfig from a YAML file.

    Parameters
    ----------
    path : str or Path
        YAML file whose top-level mapping uses AnalysisConfig field names.
    **overrides
        Values that take precedence over the file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    KeyError
        If the file contains keys that are not AnalysisConfig fields.
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    with open(file_path, encoding='utf-8') as f:
        spec = yaml.safe_load(f) or {}

    if not isinstance(spec, dict):
        raise ValueError(f"Top level of {file_path} must be a mapping.")

    allowed = {f.name for f in fields(AnalysisConfig)}
    unknown = set(spec) - allowed
    if unknown:
        raise KeyError(f"Unknown config keys in {file_path}: {sorted(unknown)}")

    spec.update(overrides)
    return AnalysisConfig(**spec)
