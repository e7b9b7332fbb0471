"""Specifications bundled with entityflow."""

from entityflow.spec import Specification

from .feature_rollout import FEATURE_ROLLOUT
from .hiring_pipeline import HIRING_PIPELINE

BUILTIN_SPECS: tuple[Specification, ...] = (HIRING_PIPELINE, FEATURE_ROLLOUT)

__all__ = ["BUILTIN_SPECS", "FEATURE_ROLLOUT", "HIRING_PIPELINE"]
