"""
Rest Manager - short and long rest recovery
"""

from typing import Any, Dict
from loguru import logger

from ..exceptions import InvalidRestRequestError
from ..models import Character, RestSummary


class RestManager:
    """Handles hit point, hit dice and spell slot recovery"""

    def __init__(self, character_manager):
        """
        Initialize the RestManager

        Args:
            character_manager: Reference to parent CharacterManager
        """
        self.character_manager = character_manager
        self.rule_set = character_manager.rule_set

    def short_rest(self, character: Character, dice: int) -> Dict[str, Any]:
        """
        Spend hit dice to recover hit points

        Each die recovers max(1, roll + CON modifier); the total is capped at
        maximum hit points.

        Args:
            character: Working copy to mutate
            dice: Number of hit dice to spend

        Returns:
            Dict with changed, message and the RestSummary

        Raises:
            InvalidRestRequestError: If dice is outside [1, current hit dice]
        """
        available = character.hit_dice.current
        if available <= 0:
            raise InvalidRestRequestError("No hit dice remaining!")
        if not 1 <= dice <= available:
            raise InvalidRestRequestError(
                f"Invalid number of hit dice: {dice} (available: {available}/{character.hit_dice.max})"
            )

        con_mod = character.ability_mod('CON')
        rolls = self.character_manager.dice.roll_dice(dice, character.hit_dice.die_type)
        recovered = sum(max(1, roll + con_mod) for roll in rolls)

        before = character.hit_points
        character.hit_points = min(character.max_hit_points, character.hit_points + recovered)
        character.hit_dice.current -= dice

        summary = RestSummary(
            rest_type='short',
            rolls=rolls,
            hit_points_restored=character.hit_points - before,
            hit_dice_spent=dice,
        )
        logger.info(f"{character.name} short rest: rolled {rolls}, recovered {summary.hit_points_restored} HP")
        return {
            'changed': True,
            'message': f"Recovered {summary.hit_points_restored} HP.",
            'summary': summary,
        }

    def long_rest(self, character: Character) -> Dict[str, Any]:
        """
        Restore hit points, hit dice and spell slots to full

        Returns:
            Dict with changed, message and the RestSummary
        """
        summary = RestSummary(
            rest_type='long',
            hit_points_restored=character.max_hit_points - character.hit_points,
            hit_dice_restored=character.hit_dice.max - character.hit_dice.current,
        )

        character.hit_points = character.max_hit_points
        character.hit_dice.current = character.hit_dice.max
        summary.spell_slots_restored = self.character_manager.get_manager('spell').reset_spell_slots(character)

        logger.info(
            f"{character.name} long rest: +{summary.hit_points_restored} HP, "
            f"+{summary.hit_dice_restored} hit dice, +{summary.spell_slots_restored} spell slots"
        )
        return {
            'changed': True,
            'message': f"{character.name} finishes a long rest.",
            'summary': summary,
        }
