"""
Tests for CharacterCreationService.
Derivation from creation input: every race/class pair at several levels,
background and class option benefits, languages, proficiencies, hit point
methods and starting equipment.
"""
import pytest
from unittest.mock import Mock

from character.exceptions import IncompleteDataError
from character.factory import create_character_manager
from character.models import CreationInput, SpellSelection, StartingItem, SubclassPending
from gamedata.loader import load_rule_set
from utils.dice import DiceRoller


RULE_SET = load_rule_set()
RACE_SLUGS = [race.slug for race in RULE_SET.list_races()]
CLASS_SLUGS = [cls.slug for cls in RULE_SET.list_classes()]


@pytest.fixture
def engine():
    return create_character_manager(RULE_SET, dice=DiceRoller(seed=99))


@pytest.fixture
def service(engine):
    return engine.creation_service


def make_input(**overrides):
    data = dict(
        name="Tamsin",
        race_slug="human",
        class_slug="fighter",
        abilities={'STR': 15, 'DEX': 14, 'CON': 13, 'INT': 12, 'WIS': 10, 'CHA': 8},
    )
    data.update(overrides)
    return CreationInput(**data)


class TestDerivationTotality:
    """Every known race and class derives a consistent character"""

    @pytest.mark.parametrize("class_slug", CLASS_SLUGS)
    @pytest.mark.parametrize("race_slug", RACE_SLUGS)
    def test_level_one(self, engine, race_slug, class_slug):
        character = engine.create_character(make_input(race_slug=race_slug, class_slug=class_slug)).character
        assert engine.validate_character(character) == (True, [])
        assert character.level == 1
        assert character.hit_points == character.max_hit_points

    @pytest.mark.parametrize("level", [2, 3, 5, 10, 11, 17, 20])
    @pytest.mark.parametrize("class_slug", CLASS_SLUGS)
    def test_higher_levels(self, engine, class_slug, level):
        for edition in ('2014', '2024'):
            character = engine.create_character(
                make_input(class_slug=class_slug, level=level, edition=edition)
            ).character
            assert engine.validate_character(character) == (True, [])
            assert character.proficiency_bonus == RULE_SET.proficiency_bonus(level)
            assert character.hit_dice.max == level


class TestAbilities:

    def test_racial_and_background_bonuses_stack(self, service):
        character = service.derive(make_input(
            race_slug='elf', lineage_slug='high-elf', background_ability_bonuses={'INT': 2, 'WIS': 1},
        ))
        assert character.abilities['DEX'].score == 16
        assert character.abilities['INT'].score == 15
        assert character.abilities['WIS'].score == 11
        assert character.lineage_slug == 'high-elf'

    def test_variant_human(self, service):
        character = service.derive(make_input(variant_slug='variant-human'))
        assert character.abilities['STR'].score == 16
        assert character.abilities['CON'].score == 13
        assert 'Feat' in character.features_and_traits.racial_traits

    def test_unknown_lineage_is_ignored(self, service):
        character = service.derive(make_input(race_slug='elf', lineage_slug='drow'))
        assert character.lineage_slug is None
        assert character.abilities['DEX'].score == 16

    def test_racial_bonus_on_a_thirty_is_capped(self, engine):
        character = engine.create_character(make_input(
            abilities={'STR': 30, 'DEX': 14, 'CON': 13, 'INT': 12, 'WIS': 10, 'CHA': 8},
            background_ability_bonuses={'STR': 2},
        )).character
        assert character.abilities['STR'].score == 30
        assert character.abilities['STR'].modifier == 10
        assert engine.validate_character(character) == (True, [])


class TestHitPoints:

    def test_max_method(self, service):
        assert service.derive(make_input(class_slug='barbarian')).max_hit_points == 12 + 2

    def test_rolled_method(self, service):
        character = service.derive(make_input(class_slug='wizard', hp_calculation_method='rolled', rolled_hp=3))
        assert character.max_hit_points == 3 + 2

    def test_rolled_value_clamped_to_die(self, service):
        character = service.derive(make_input(class_slug='wizard', hp_calculation_method='rolled', rolled_hp=9))
        assert character.max_hit_points == 6 + 2

    def test_rolled_without_value_uses_max(self, service):
        character = service.derive(make_input(class_slug='wizard', hp_calculation_method='rolled'))
        assert character.max_hit_points == 6 + 2

    def test_never_below_one(self, service):
        character = service.derive(make_input(
            class_slug='wizard', abilities={'STR': 8, 'DEX': 8, 'CON': 1, 'INT': 8, 'WIS': 8, 'CHA': 8},
            race_slug='elf', hp_calculation_method='rolled', rolled_hp=1,
        ))
        assert character.max_hit_points == 1

    def test_roll_hit_points_uses_roller(self, service):
        roller = Mock()
        roller.roll_dice.return_value = [9]
        assert service.roll_hit_points('fighter', roller=roller) == 9
        roller.roll_dice.assert_called_once_with(1, 10)

    def test_roll_hit_points_unknown_class(self, service):
        with pytest.raises(IncompleteDataError):
            service.roll_hit_points('mystic')


class TestBackgroundAndSkills:

    def test_background_skills_and_tools(self, service):
        character = service.derive(make_input(background='criminal', selected_skills=['Athletics']))
        assert character.background == 'Criminal'
        assert character.skills['Deception'].proficient
        assert character.skills['Stealth'].proficient
        assert character.skills['Athletics'].proficient
        assert "Thieves' tools" in character.proficiencies.tools
        assert character.find_item('crowbar') is not None

    def test_background_looked_up_by_name(self, service):
        character = service.derive(make_input(background='Sage'))
        assert character.skills['Arcana'].proficient

    def test_unknown_background_adds_nothing(self, service):
        character = service.derive(make_input(background='Pirate Queen'))
        assert character.background == 'Pirate Queen'
        assert not any(entry.proficient for entry in character.skills.values())
        assert character.inventory == []

    def test_racial_skill(self, service):
        assert service.derive(make_input(race_slug='elf')).skills['Perception'].proficient

    def test_expertise(self, service):
        character = service.derive(make_input(
            class_slug='rogue', selected_skills=['Stealth', 'Acrobatics'], expertise_skills=['Stealth'],
        ))
        # DEX 15 (+2) with doubled proficiency bonus
        assert character.skills['Stealth'].value == 2 + 4
        assert character.skills['Acrobatics'].value == 2 + 2

    def test_all_eighteen_skills_present(self, service):
        assert len(service.derive(make_input()).skills) == 18


class TestClassOptions:
    """Edition-specific class options such as the cleric's divine order"""

    def test_thaumaturge(self, service):
        character = service.derive(make_input(
            class_slug='cleric', edition='2024', background='acolyte',
            abilities={'STR': 10, 'DEX': 12, 'CON': 14, 'INT': 10, 'WIS': 15, 'CHA': 8},
            class_options={'divine-order': 'thaumaturge'},
            spell_selection=SpellSelection(selected_cantrips=['guidance', 'light', 'sacred-flame', 'thaumaturgy']),
        ))
        # human: INT 11 (+0), WIS 16 (+3)
        assert character.skills['Arcana'].value == 3
        assert character.skills['Religion'].value == 0 + 2 + 3
        assert {(b.skill, b.ability) for b in character.skill_bonuses} == {('Arcana', 'WIS'), ('Religion', 'WIS')}
        assert all(b.source == 'Divine Order: Thaumaturge' for b in character.skill_bonuses)
        assert len(character.spellcasting.cantrips_known) == 4

    def test_protector_proficiencies(self, service):
        character = service.derive(make_input(
            class_slug='cleric', edition='2024', class_options={'divine-order': 'protector'},
        ))
        assert 'Heavy armor' in character.proficiencies.armor
        assert 'Martial weapons' in character.proficiencies.weapons

    def test_2024_cleric_has_no_subclass_at_level_one(self, service):
        character = service.derive(make_input(class_slug='cleric', edition='2024'))
        assert character.pending_choices == []

    def test_2014_cleric_needs_domain_at_level_one(self, service):
        character = service.derive(make_input(class_slug='cleric'))
        assert character.pending_choices == [SubclassPending(options=['life', 'light'])]


class TestSubclass:

    def test_subclass_at_unlock_level(self, service):
        character = service.derive(make_input(level=3, subclass_slug='champion'))
        assert character.subclass == 'champion'
        assert 'Improved Critical' in character.features_and_traits.class_features
        assert character.pending_choices == []

    def test_subclass_below_unlock_level_ignored(self, service):
        character = service.derive(make_input(level=2, subclass_slug='champion'))
        assert character.subclass is None

    def test_unknown_subclass_leaves_choice_pending(self, service):
        character = service.derive(make_input(level=3, subclass_slug='samurai'))
        assert character.subclass is None
        assert [p.type for p in character.pending_choices] == ['subclass']


class TestLanguagesAndProficiencies:

    def test_languages_sorted_and_merged(self, service):
        character = service.derive(make_input(
            race_slug='dwarf', class_slug='druid', background='outlander', known_languages=['Elvish', 'Common'],
        ))
        assert character.languages == ['Common', 'Druidic', 'Dwarvish', 'Elvish', 'Sylvan']

    def test_common_always_known(self, service):
        assert service.derive(make_input(race_slug='elf')).languages == ['Common', 'Elvish']

    def test_proficiencies_merge_class_and_race(self, service):
        character = service.derive(make_input(race_slug='dwarf', class_slug='wizard'))
        assert 'Daggers' in character.proficiencies.weapons
        assert 'Battleaxe' in character.proficiencies.weapons
        assert character.proficiencies.saving_throws == ['INT', 'WIS']


class TestStartingEquipment:

    def test_equipped_starting_items(self, service):
        character = service.derive(make_input(starting_inventory=[
            StartingItem(equipment_slug='chain-mail', equipped=True),
            StartingItem(equipment_slug='longsword', equipped=True),
            StartingItem(equipment_slug='shield', equipped=True),
        ]))
        assert character.equipped_armor == 'chain-mail'
        assert character.equipped_weapons == ['longsword', 'shield']
        assert character.armor_class == 18

    def test_third_equipped_weapon_stays_in_pack(self, service):
        character = service.derive(make_input(starting_inventory=[
            StartingItem(equipment_slug='longsword', equipped=True),
            StartingItem(equipment_slug='dagger', equipped=True),
            StartingItem(equipment_slug='handaxe', equipped=True),
        ]))
        assert character.equipped_weapons == ['longsword', 'dagger']
        assert not character.find_item('handaxe').equipped

    def test_starting_gold_and_personality(self, service):
        character = service.derive(make_input(starting_gold=40, personality='Curious', flaws='Reckless'))
        assert character.currency.gp == 40
        assert character.features_and_traits.personality == 'Curious'
        assert character.features_and_traits.flaws == 'Reckless'

    def test_selected_feats_deduplicated(self, service):
        character = service.derive(make_input(selected_feats=['alert', 'alert', 'lucky']))
        assert character.selected_feats == ['alert', 'lucky']
