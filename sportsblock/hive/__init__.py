"""
Sportsblock Hive integration

JSON-RPC client, value helpers and HIVE Power math.
"""

from sportsblock.hive.client import HiveClient, close_hive_client, get_hive_client
from sportsblock.hive.errors import HiveAPIError, HiveError, handle_hive_error

__all__ = [
    "HiveAPIError",
    "HiveClient",
    "HiveError",
    "close_hive_client",
    "get_hive_client",
    "handle_hive_error",
]
