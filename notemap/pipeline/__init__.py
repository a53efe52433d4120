"""Pipeline layer - Orchestrates analysis, quantization and lane assignment."""

from .builder import GenerationProgress, GenerationState, MapBuilder

__all__ = ["GenerationProgress", "GenerationState", "MapBuilder"]
