"""
Inventory Manager - builds starting inventories and handles equip/unequip/add/remove
Inventory lines are merged by equipment slug; equipped flags always mirror the
equipped armor and weapon slots.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple
from loguru import logger

from gamedata.models import Background, CharacterClass, ItemGrant
from ..models import Character, CreationInput, InventoryItem, MAX_EQUIPPED_WEAPONS


CARRY_CAPACITY_PER_STR = 15


class InventoryManager:
    """Manager for character inventory and equipped items"""

    def __init__(self, character_manager):
        """
        Initialize the InventoryManager

        Args:
            character_manager: Reference to parent CharacterManager
        """
        self.character_manager = character_manager
        self.rule_set = character_manager.rule_set

    # Starting inventory

    def build_inventory(self, creation: CreationInput, cls: CharacterClass,
                        background: Optional[Background]) -> List[InventoryItem]:
        """
        Merge every starting equipment source into one inventory

        Sources in order: the level equipment package, background equipment,
        resolved class equipment choices, then extra starting items. Lines are
        merged by slug with quantities summed; nothing starts equipped.

        Returns:
            List of inventory lines
        """
        inventory: List[InventoryItem] = []

        self._merge_grants(inventory, self.rule_set.equipment_package(cls.slug, creation.level), 'equipment package')
        if background is not None:
            self._merge_grants(inventory, background.equipment, f"background {background.slug}")
        self._merge_grants(inventory, self.resolve_equipment_choices(creation, cls), 'class equipment choices')
        self._merge_grants(
            inventory,
            [ItemGrant(equipment_slug=i.equipment_slug, quantity=i.quantity) for i in creation.starting_inventory],
            'starting inventory'
        )

        logger.debug(f"InventoryManager: built {len(inventory)} inventory lines for {creation.name}")
        return inventory

    def resolve_equipment_choices(self, creation: CreationInput, cls: CharacterClass) -> List[ItemGrant]:
        """
        Items from each resolved equipment choice

        A selection without its own options falls back to the class's option
        list for the same choice id. Unresolved or out-of-range selections add nothing.
        """
        class_choices = {c.choice_id: c for c in cls.equipment_choices}
        grants: List[ItemGrant] = []
        for selection in creation.equipment_choices:
            if selection.selected is None:
                continue
            options = selection.options
            if not options and selection.choice_id in class_choices:
                options = class_choices[selection.choice_id].options
            if selection.selected >= len(options):
                logger.warning(f"Equipment choice '{selection.choice_id}' selected option {selection.selected} does not exist")
                continue
            grants.extend(options[selection.selected])
        return grants

    def _merge_grants(self, inventory: List[InventoryItem], grants: Iterable[ItemGrant], source: str):
        for grant in grants:
            if self.rule_set.get_equipment(grant.equipment_slug) is None:
                logger.warning(f"Skipping unknown equipment '{grant.equipment_slug}' from {source}")
                continue
            existing = next((i for i in inventory if i.equipment_slug == grant.equipment_slug), None)
            if existing:
                existing.quantity += grant.quantity
            else:
                inventory.append(InventoryItem(equipment_slug=grant.equipment_slug, quantity=grant.quantity))

    # Operations

    def equip_item(self, character: Character, slug: str) -> Tuple[bool, str]:
        """
        Equip an inventory item

        Body armor replaces the current armor. Weapons and shields take a free
        weapon slot; with both slots used the request is ignored.

        Returns:
            (changed, message)
        """
        item = character.find_item(slug)
        if item is None:
            return False, f"{slug} is not in the inventory"
        equipment = self.rule_set.get_equipment(slug)
        if equipment is None:
            return False, f"Unknown equipment {slug}"
        if item.equipped:
            return False, f"{equipment.name} is already equipped"

        if equipment.is_body_armor:
            previous = character.equipped_armor
            if previous:
                self._set_equipped_flag(character, previous, False)
            character.equipped_armor = slug
            message = f"Equipped {equipment.name}" + (f" (replacing {previous})" if previous else "")
        elif equipment.is_weapon or equipment.is_shield:
            if len(character.equipped_weapons) >= MAX_EQUIPPED_WEAPONS:
                return False, f"Cannot equip {equipment.name}: both weapon slots are in use"
            character.equipped_weapons.append(slug)
            message = f"Equipped {equipment.name}"
        else:
            return False, f"{equipment.name} cannot be equipped"

        item.equipped = True
        self._recalculate_ac(character)
        logger.info(f"{character.name}: {message}")
        return True, message

    def unequip_item(self, character: Character, slug: str) -> Tuple[bool, str]:
        """
        Unequip an item from the armor or weapon slots

        Returns:
            (changed, message)
        """
        if character.equipped_armor == slug:
            character.equipped_armor = None
        elif slug in character.equipped_weapons:
            character.equipped_weapons.remove(slug)
        else:
            return False, f"{slug} is not equipped"

        self._set_equipped_flag(character, slug, False)
        self._recalculate_ac(character)
        logger.info(f"{character.name}: unequipped {slug}")
        return True, f"Unequipped {self._display_name(slug)}"

    def add_item(self, character: Character, slug: str, quantity: int = 1) -> Tuple[bool, str]:
        """
        Add items to the inventory, merging with an existing line

        Returns:
            (changed, message)
        """
        if quantity < 1:
            return False, f"Quantity must be at least 1, got {quantity}"
        if self.rule_set.get_equipment(slug) is None:
            return False, f"Unknown equipment {slug}"

        item = character.find_item(slug)
        if item:
            item.quantity += quantity
        else:
            character.inventory.append(InventoryItem(equipment_slug=slug, quantity=quantity))
        self._recalculate_ac(character)
        return True, f"Added {quantity} x {self._display_name(slug)}"

    def remove_item(self, character: Character, slug: str, quantity: int = 1) -> Tuple[bool, str]:
        """
        Remove items from the inventory

        A line reaching zero is dropped and, if equipped, unequipped first.

        Returns:
            (changed, message)
        """
        if quantity < 1:
            return False, f"Quantity must be at least 1, got {quantity}"
        item = character.find_item(slug)
        if item is None:
            return False, f"{slug} is not in the inventory"

        item.quantity -= quantity
        if item.quantity <= 0:
            if item.equipped:
                if character.equipped_armor == slug:
                    character.equipped_armor = None
                if slug in character.equipped_weapons:
                    character.equipped_weapons.remove(slug)
            character.inventory.remove(item)
            message = f"Removed all {self._display_name(slug)}"
        else:
            message = f"Removed {quantity} x {self._display_name(slug)}"

        self._recalculate_ac(character)
        return True, message

    # Helpers

    def _set_equipped_flag(self, character: Character, slug: str, equipped: bool):
        item = character.find_item(slug)
        if item:
            item.equipped = equipped

    def _recalculate_ac(self, character: Character):
        self.character_manager.get_manager('combat').recalculate_armor_class(character)

    def _display_name(self, slug: str) -> str:
        equipment = self.rule_set.get_equipment(slug)
        return equipment.name if equipment else slug

    def calculate_encumbrance(self, character: Character) -> Dict[str, Any]:
        """Carried weight against a carrying capacity of STR x 15"""
        total_weight = 0.0
        for item in character.inventory:
            equipment = self.rule_set.get_equipment(item.equipment_slug)
            if equipment:
                total_weight += equipment.weight * item.quantity
        capacity = character.abilities['STR'].score * CARRY_CAPACITY_PER_STR
        return {
            'total_weight': round(total_weight, 2),
            'capacity': capacity,
            'encumbered': total_weight > capacity,
        }

    def get_inventory_summary(self, character: Character) -> Dict[str, Any]:
        items = []
        for item in character.inventory:
            equipment = self.rule_set.get_equipment(item.equipment_slug)
            items.append({
                'equipment_slug': item.equipment_slug,
                'name': equipment.name if equipment else item.equipment_slug,
                'category': equipment.category if equipment else None,
                'quantity': item.quantity,
                'equipped': item.equipped,
            })
        return {
            'items': items,
            'equipped_armor': character.equipped_armor,
            'equipped_weapons': list(character.equipped_weapons),
            'currency': character.currency.model_dump(),
            'encumbrance': self.calculate_encumbrance(character),
        }
