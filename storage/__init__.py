"""
Persistence collaborators for committed FinancialOutput sets.
"""

from .base import OutputKey, OutputSet, OutputStore
from .memory import InMemoryOutputStore

__all__ = ["OutputKey", "OutputSet", "OutputStore", "InMemoryOutputStore"]
