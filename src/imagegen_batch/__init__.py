"""
Batch image generation and editing toolkit for hosted text-to-image providers.
"""
from .config import load_config
from .presets import get_preset
from .tasks.batch_runner import BatchRunner

__all__ = ["load_config", "get_preset", "BatchRunner"]
