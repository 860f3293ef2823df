"""Application constants."""

from enum import Enum
from typing import Final


class ReactionSymbol(str, Enum):
    """The bounded set of reactions a user may leave on a preset.

    Keeping this closed stops ``reaction_counts`` growing a key per
    arbitrary client string.
    """

    THUMBS_UP = "👍"
    HEART = "❤️"
    LAUGH = "😂"
    SURPRISED = "😮"
    THINKING = "🤔"
    THUMBS_DOWN = "👎"


# Display order for reaction pickers
REACTION_SYMBOLS: Final[list[str]] = [symbol.value for symbol in ReactionSymbol]

# Listing defaults
DEFAULT_PAGE_SIZE: Final[int] = 15

# Prefix for ids the client assigns before the server acknowledges a save
PLACEHOLDER_ID_PREFIX: Final[str] = "tmp-"
