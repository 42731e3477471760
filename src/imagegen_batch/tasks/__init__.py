"""
Batch planning and execution utilities.
"""
from .batch_runner import BatchRunner
from .prompt_plan import BatchEntry, BatchPlan, load_batch_plan, load_prompts

__all__ = ["BatchRunner", "BatchEntry", "BatchPlan", "load_batch_plan", "load_prompts"]
