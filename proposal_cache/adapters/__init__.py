"""
Adapters package for remote data sources.

The subgraph client follows the ``BaseAdapter`` contract: fetch methods
return an ``AdapterResponse`` instead of raising.
"""

from .base_adapter import BaseAdapter
from .subgraph_client import SubgraphClient

__all__ = [
    "BaseAdapter",
    "SubgraphClient",
]
