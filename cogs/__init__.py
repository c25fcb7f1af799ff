"""Initialize the cogs package and define available cogs."""
from typing import List

# Load order: tracking first, then games, then administration
CORE_EXTENSIONS: List[str] = [
    "cogs.streaks",
    "cogs.economy",
    "cogs.admin",
]

def get_extensions() -> List[str]:
    """Get list of extensions to load."""
    return list(CORE_EXTENSIONS)

__all__ = [
    "CORE_EXTENSIONS",
    "get_extensions"
]
