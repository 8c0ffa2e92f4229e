"""
Article search and content retrieval.

This package resolves chat queries to Wikipedia titles and fetches
article text for summarization.
"""

from .client import WikipediaClient
from .resolver import ArticleResolver, SearchProvider

__all__ = ["WikipediaClient", "ArticleResolver", "SearchProvider"]
