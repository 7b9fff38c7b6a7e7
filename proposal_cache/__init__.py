"""
proposal_cache: local cache, sync and semantic search for DAO proposals.
"""

__version__ = "0.1.0"
