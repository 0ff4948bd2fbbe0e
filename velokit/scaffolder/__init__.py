"""Project scaffolding: template resolution, materialisation and post-processing."""

from .generator import BuildPlan, BuildResult, PostProcessError, ProjectGenerator
from .materializer import MaterializationError, Materializer
from .registry import TemplateRegistry
from .resolver import TemplateNotFoundError, resolve
from .templates import TemplateRenderer
from .variables import derive

__all__ = [
    "BuildPlan",
    "BuildResult",
    "MaterializationError",
    "Materializer",
    "PostProcessError",
    "ProjectGenerator",
    "TemplateNotFoundError",
    "TemplateRegistry",
    "TemplateRenderer",
    "derive",
    "resolve",
]
