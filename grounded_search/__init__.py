"""
Grounded Search

Hybrid retrieval and re-ranking over embedded document chunks.
"""

__version__ = "0.1.0"
