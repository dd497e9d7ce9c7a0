"""
Dice roller used for rolled hit points and short-rest recovery
"""

import random
from typing import List, Optional

__all__ = ["DiceRoller"]


class DiceRoller:
    """Seedable source of die rolls"""

    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random(seed)

    def roll_dice(self, count: int, sides: int) -> List[int]:
        """
        Roll ``count`` dice with ``sides`` faces

        Returns:
            One result per die, each in [1, sides]
        """
        if count < 0:
            raise ValueError(f"Cannot roll a negative number of dice: {count}")
        if sides < 1:
            raise ValueError(f"A die needs at least one side, got {sides}")
        return [self._rng.randint(1, sides) for _ in range(count)]
