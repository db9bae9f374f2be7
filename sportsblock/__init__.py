"""
Sportsblock API

Custodial accounts, social interactions and wallet logins layered on top of
the Hive blockchain.
"""

__version__ = "0.1.0"

from sportsblock.config import settings

__all__ = ["settings", "__version__"]
