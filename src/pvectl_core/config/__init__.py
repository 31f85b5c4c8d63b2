"""Pipeline configuration."""
from .settings import PipelineSettings, Timeouts

__all__ = ["PipelineSettings", "Timeouts"]
