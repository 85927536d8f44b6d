"""
Batching support for bulk requests.

Splits large title/ID lists into chunks bounded by the server batch cap and
the URL length budget.
"""

from .batch import CapacityModel, Chunk, BatchPlan, BatchPlanner

__all__ = [
    "CapacityModel",
    "Chunk",
    "BatchPlan",
    "BatchPlanner",
]
