"""
Tests for InventoryManager.
Covers starting inventory merging, equipment choices, equip slots,
add/remove with merged lines and encumbrance.
"""
import pytest

from character.factory import create_character_manager
from character.models import CreationInput, EquipmentChoiceSelection, StartingItem
from gamedata.loader import load_rule_set
from utils.dice import DiceRoller


@pytest.fixture(scope="module")
def rule_set():
    return load_rule_set()


@pytest.fixture
def engine(rule_set):
    return create_character_manager(rule_set, dice=DiceRoller(seed=3))


@pytest.fixture
def inventory_manager(engine):
    return engine.get_manager('inventory')


def make_creation(**overrides):
    data = dict(
        name="Corwin",
        race_slug="human",
        class_slug="fighter",
        abilities={'STR': 16, 'DEX': 14, 'CON': 14, 'INT': 10, 'WIS': 12, 'CHA': 8},
    )
    data.update(overrides)
    return CreationInput(**data)


@pytest.fixture
def fighter(engine):
    creation = make_creation(starting_inventory=[
        StartingItem(equipment_slug='chain-mail'),
        StartingItem(equipment_slug='leather'),
        StartingItem(equipment_slug='longsword'),
        StartingItem(equipment_slug='shield'),
        StartingItem(equipment_slug='dagger', quantity=2),
        StartingItem(equipment_slug='explorers-pack'),
    ])
    return engine.create_character(creation).character


def quantities(character):
    return {item.equipment_slug: item.quantity for item in character.inventory}


class TestBuildInventory:
    """Merging package, background, equipment choices and starting items"""

    def test_background_and_starting_items_merge_by_slug(self, rule_set, inventory_manager):
        creation = make_creation(
            background='acolyte',
            starting_inventory=[StartingItem(equipment_slug='common-clothes', quantity=2)],
        )
        inventory = inventory_manager.build_inventory(
            creation, rule_set.get_class('fighter'), rule_set.get_background('acolyte')
        )
        counts = {i.equipment_slug: i.quantity for i in inventory}
        assert counts['common-clothes'] == 3
        assert counts['holy-symbol'] == 1
        assert counts['prayer-book'] == 1
        assert not any(i.equipped for i in inventory)

    def test_equipment_package_by_level(self, rule_set, inventory_manager):
        fighter = rule_set.get_class('fighter')
        assert inventory_manager.build_inventory(make_creation(level=4), fighter, None) == []

        counts = {i.equipment_slug: i.quantity
                  for i in inventory_manager.build_inventory(make_creation(level=5), fighter, None)}
        assert counts == {'potion-of-healing': 2}

        counts = {i.equipment_slug: i.quantity
                  for i in inventory_manager.build_inventory(make_creation(level=11), fighter, None)}
        assert counts == {'potion-of-healing': 4, 'plate': 1}

    def test_fallback_package_for_other_classes(self, rule_set, inventory_manager):
        creation = make_creation(class_slug='rogue', level=11)
        counts = {i.equipment_slug: i.quantity
                  for i in inventory_manager.build_inventory(creation, rule_set.get_class('rogue'), None)}
        assert counts == {'potion-of-healing': 3}

    def test_equipment_choice_falls_back_to_class_options(self, rule_set, inventory_manager):
        creation = make_creation(equipment_choices=[
            EquipmentChoiceSelection(choice_id='fighter-armor', selected=1),
            EquipmentChoiceSelection(choice_id='fighter-ranged', selected=None),
        ])
        counts = {i.equipment_slug: i.quantity
                  for i in inventory_manager.build_inventory(creation, rule_set.get_class('fighter'), None)}
        assert counts == {'leather': 1, 'longbow': 1, 'arrow': 20}

    def test_out_of_range_choice_adds_nothing(self, rule_set, inventory_manager):
        creation = make_creation(equipment_choices=[
            EquipmentChoiceSelection(choice_id='fighter-armor', selected=5),
        ])
        assert inventory_manager.build_inventory(creation, rule_set.get_class('fighter'), None) == []

    def test_unknown_equipment_is_skipped(self, rule_set, inventory_manager):
        creation = make_creation(starting_inventory=[
            StartingItem(equipment_slug='vorpal-sword'),
            StartingItem(equipment_slug='dagger'),
        ])
        inventory = inventory_manager.build_inventory(creation, rule_set.get_class('fighter'), None)
        assert [i.equipment_slug for i in inventory] == ['dagger']


class TestEquip:
    """Armor and weapon slots"""

    def test_equip_body_armor_sets_ac(self, inventory_manager, fighter):
        changed, message = inventory_manager.equip_item(fighter, 'chain-mail')
        assert changed
        assert fighter.equipped_armor == 'chain-mail'
        assert fighter.find_item('chain-mail').equipped
        assert fighter.armor_class == 16
        assert 'Chain Mail' in message

    def test_body_armor_replaces_previous(self, inventory_manager, fighter):
        inventory_manager.equip_item(fighter, 'leather')
        changed, message = inventory_manager.equip_item(fighter, 'chain-mail')
        assert changed
        assert 'replacing leather' in message
        assert not fighter.find_item('leather').equipped
        assert fighter.find_item('chain-mail').equipped
        fighter.check_invariants()

    def test_shield_uses_weapon_slot(self, inventory_manager, fighter):
        inventory_manager.equip_item(fighter, 'shield')
        assert fighter.equipped_weapons == ['shield']
        assert fighter.armor_class == 12 + 2

    def test_third_weapon_is_rejected(self, inventory_manager, fighter):
        assert inventory_manager.equip_item(fighter, 'longsword')[0]
        assert inventory_manager.equip_item(fighter, 'shield')[0]
        changed, message = inventory_manager.equip_item(fighter, 'dagger')
        assert not changed
        assert 'both weapon slots' in message
        assert fighter.equipped_weapons == ['longsword', 'shield']
        assert not fighter.find_item('dagger').equipped

    def test_item_not_in_inventory(self, inventory_manager, fighter):
        changed, message = inventory_manager.equip_item(fighter, 'plate')
        assert not changed
        assert 'not in the inventory' in message

    def test_gear_cannot_be_equipped(self, inventory_manager, fighter):
        changed, message = inventory_manager.equip_item(fighter, 'explorers-pack')
        assert not changed
        assert 'cannot be equipped' in message

    def test_already_equipped(self, inventory_manager, fighter):
        inventory_manager.equip_item(fighter, 'longsword')
        changed, message = inventory_manager.equip_item(fighter, 'longsword')
        assert not changed
        assert 'already equipped' in message

    def test_unequip_armor_restores_unarmored_ac(self, inventory_manager, fighter):
        inventory_manager.equip_item(fighter, 'chain-mail')
        changed, _ = inventory_manager.unequip_item(fighter, 'chain-mail')
        assert changed
        assert fighter.equipped_armor is None
        assert not fighter.find_item('chain-mail').equipped
        assert fighter.armor_class == 12

    def test_unequip_item_not_equipped(self, inventory_manager, fighter):
        changed, message = inventory_manager.unequip_item(fighter, 'dagger')
        assert not changed
        assert 'not equipped' in message


class TestAddRemove:
    """Quantity bookkeeping on merged inventory lines"""

    def test_add_merges_existing_line(self, inventory_manager, fighter):
        changed, _ = inventory_manager.add_item(fighter, 'dagger', 3)
        assert changed
        assert quantities(fighter)['dagger'] == 5
        assert len([i for i in fighter.inventory if i.equipment_slug == 'dagger']) == 1

    def test_add_new_line(self, inventory_manager, fighter):
        inventory_manager.add_item(fighter, 'arrow', 20)
        assert quantities(fighter)['arrow'] == 20

    def test_add_unknown_equipment(self, inventory_manager, fighter):
        changed, message = inventory_manager.add_item(fighter, 'bag-of-holding')
        assert not changed
        assert 'Unknown equipment' in message

    def test_add_requires_positive_quantity(self, inventory_manager, fighter):
        assert not inventory_manager.add_item(fighter, 'dagger', 0)[0]

    def test_partial_remove(self, inventory_manager, fighter):
        changed, _ = inventory_manager.remove_item(fighter, 'dagger', 1)
        assert changed
        assert quantities(fighter)['dagger'] == 1

    def test_remove_all_drops_line(self, inventory_manager, fighter):
        changed, message = inventory_manager.remove_item(fighter, 'dagger', 5)
        assert changed
        assert 'dagger' not in quantities(fighter)
        assert message.startswith('Removed all')

    def test_removing_equipped_item_unequips_it(self, inventory_manager, fighter):
        inventory_manager.equip_item(fighter, 'chain-mail')
        inventory_manager.equip_item(fighter, 'shield')
        inventory_manager.remove_item(fighter, 'shield')
        inventory_manager.remove_item(fighter, 'chain-mail')
        assert fighter.equipped_armor is None
        assert fighter.equipped_weapons == []
        assert fighter.armor_class == 12
        fighter.check_invariants()

    def test_remove_missing_item(self, inventory_manager, fighter):
        changed, message = inventory_manager.remove_item(fighter, 'plate')
        assert not changed
        assert 'not in the inventory' in message


class TestEncumbrance:

    def test_capacity_is_strength_times_fifteen(self, inventory_manager, fighter):
        encumbrance = inventory_manager.calculate_encumbrance(fighter)
        assert encumbrance['capacity'] == 17 * 15
        # chain mail 55, leather 10, longsword 3, shield 6, 2 daggers 2, pack 59
        assert encumbrance['total_weight'] == 135
        assert not encumbrance['encumbered']

    def test_inventory_summary(self, inventory_manager, fighter):
        inventory_manager.equip_item(fighter, 'longsword')
        summary = inventory_manager.get_inventory_summary(fighter)
        longsword = next(i for i in summary['items'] if i['equipment_slug'] == 'longsword')
        assert longsword['equipped']
        assert longsword['category'] == 'weapon'
        assert summary['currency']['gp'] == 15
