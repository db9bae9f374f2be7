"""
Sportsblock Database Layer

Neo4j storage for custodial users and their content.
"""

from sportsblock.database.client import Neo4jClient
from sportsblock.database.schema import SchemaManager

__all__ = [
    "Neo4jClient",
    "SchemaManager",
]
