"""
Services - facade and background worker.

The arq worker module is not imported here: it reads Redis settings at import time.
"""

from .recommendation import RecommendationService

__all__ = ['RecommendationService']
