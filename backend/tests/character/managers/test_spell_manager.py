"""
Tests for SpellManager.
Covers the derived spellcasting block for each caster type, cantrip limits,
slot refresh across levels and expending or regaining slots.
"""
import pytest

from character.exceptions import InvalidChoiceError
from character.factory import create_character_manager
from character.models import CreationInput, SpellSelection
from gamedata.loader import load_rule_set
from utils.dice import DiceRoller


@pytest.fixture(scope="module")
def rule_set():
    return load_rule_set()


@pytest.fixture
def engine(rule_set):
    return create_character_manager(rule_set, dice=DiceRoller(seed=5))


@pytest.fixture
def spell_manager(engine):
    return engine.get_manager('spell')


def create(engine, class_slug, selection=None, **overrides):
    data = dict(
        name="Ysolde",
        race_slug="human",
        class_slug=class_slug,
        abilities={'STR': 8, 'DEX': 14, 'CON': 14, 'INT': 15, 'WIS': 15, 'CHA': 15},
        spell_selection=selection or SpellSelection(),
    )
    data.update(overrides)
    return engine.create_character(CreationInput(**data)).character


@pytest.fixture
def wizard(engine):
    return create(engine, 'wizard', SpellSelection(
        selected_cantrips=['fire-bolt', 'light', 'mage-hand'],
        spellbook=['magic-missile', 'shield', 'sleep', 'mage-armor', 'detect-magic', 'burning-hands'],
        daily_prepared=['magic-missile', 'shield'],
    ))


class TestDeriveSpellcasting:
    """Spellcasting block derived at creation"""

    def test_wizard_block(self, wizard):
        sc = wizard.spellcasting
        assert sc.ability == 'INT'
        assert sc.spellcasting_type == 'wizard'
        # INT 16 (+3), proficiency bonus 2
        assert sc.spell_save_dc == 13
        assert sc.spell_attack_bonus == 5
        assert sc.spell_slots == [2, 0, 0, 0, 0, 0, 0, 0, 0]
        assert sc.used_spell_slots == [0] * 9
        assert sc.cantrips_known == ['fire-bolt', 'light', 'mage-hand']
        assert len(sc.spellbook) == 6
        assert sc.prepared_spells == ['magic-missile', 'shield']

    def test_cantrips_over_limit_are_trimmed(self, engine):
        wizard = create(engine, 'wizard', SpellSelection(
            selected_cantrips=['fire-bolt', 'light', 'mage-hand', 'ray-of-frost', 'fire-bolt'],
        ))
        assert wizard.spellcasting.cantrips_known == ['fire-bolt', 'light', 'mage-hand']

    def test_prepared_caster_knows_class_list(self, engine):
        cleric = create(engine, 'cleric', SpellSelection(
            selected_cantrips=['guidance', 'sacred-flame'],
            prepared_spells=['bless', 'cure-wounds', 'bless'],
        ), subclass_slug='life')
        sc = cleric.spellcasting
        assert sc.spellcasting_type == 'prepared'
        assert 'cure-wounds' in sc.spells_known
        assert 'bless' in sc.spells_known
        assert 'spiritual-weapon' not in sc.spells_known
        assert 'sacred-flame' not in sc.spells_known
        assert sc.prepared_spells == ['bless', 'cure-wounds']

    def test_known_caster_is_capped_by_table(self, engine):
        sorcerer = create(engine, 'sorcerer', SpellSelection(
            selected_cantrips=['fire-bolt'],
            known_spells=['magic-missile', 'shield', 'sleep'],
        ), subclass_slug='draconic')
        sc = sorcerer.spellcasting
        assert sc.spellcasting_type == 'known'
        assert sc.ability == 'CHA'
        assert sc.spells_known == ['magic-missile', 'shield']

    def test_non_caster_has_no_block(self, engine):
        assert create(engine, 'fighter').spellcasting is None

    def test_half_caster_has_no_block_at_level_one(self, engine):
        assert create(engine, 'paladin').spellcasting is None

    def test_half_caster_block_at_level_two(self, engine):
        paladin = create(engine, 'paladin', level=2)
        assert paladin.spellcasting is not None
        assert paladin.spellcasting.spell_slots[0] == 2

    def test_pact_magic_slots(self, engine):
        warlock = create(engine, 'warlock', subclass_slug='fiend')
        assert warlock.spellcasting.spell_slots == [1, 0, 0, 0, 0, 0, 0, 0, 0]


class TestCantrips:
    """Cantrip limits and picks"""

    def test_cantrip_limit_includes_bonus(self, engine, spell_manager):
        cleric = create(engine, 'cleric', edition='2024', class_options={'divine-order': 'thaumaturge'})
        assert cleric.spellcasting.bonus_cantrips == 1
        assert spell_manager.cantrip_limit(cleric) == 4

    def test_missing_cantrips(self, spell_manager, wizard):
        assert spell_manager.missing_cantrips(wizard) == 0
        wizard.spellcasting.cantrips_known = ['fire-bolt']
        assert spell_manager.missing_cantrips(wizard) == 2

    def test_add_cantrip_records_level(self, spell_manager, wizard):
        spell_manager.add_cantrip(wizard, 'ray-of-frost')
        assert 'ray-of-frost' in wizard.spellcasting.cantrips_known
        assert wizard.spellcasting.cantrip_choices_by_level == {1: ['ray-of-frost']}

    def test_add_known_cantrip_rejected(self, spell_manager, wizard):
        with pytest.raises(InvalidChoiceError):
            spell_manager.add_cantrip(wizard, 'light')

    def test_leveled_spell_is_not_a_cantrip(self, spell_manager, wizard):
        with pytest.raises(InvalidChoiceError, match='not a cantrip'):
            spell_manager.add_cantrip(wizard, 'fireball')

    def test_unknown_slug_is_accepted(self, spell_manager, wizard):
        spell_manager.add_cantrip(wizard, 'homebrew-spark')
        assert 'homebrew-spark' in wizard.spellcasting.cantrips_known

    def test_add_cantrip_without_spellcasting(self, engine, spell_manager):
        with pytest.raises(InvalidChoiceError):
            spell_manager.add_cantrip(create(engine, 'fighter'), 'light')

    def test_remove_level_cantrips(self, spell_manager, wizard):
        wizard.level = 4
        spell_manager.add_cantrip(wizard, 'ray-of-frost')
        removed = spell_manager.remove_level_cantrips(wizard, 4)
        assert removed == ['ray-of-frost']
        assert wizard.spellcasting.cantrips_known == ['fire-bolt', 'light', 'mage-hand']
        assert wizard.spellcasting.cantrip_choices_by_level == {}

    def test_trim_cantrips_drops_most_recent(self, spell_manager, wizard):
        wizard.spellcasting.cantrips_known.append('ray-of-frost')
        wizard.spellcasting.cantrip_choices_by_level[4] = ['ray-of-frost']
        removed = spell_manager.trim_cantrips(wizard)
        assert removed == ['ray-of-frost']
        assert len(wizard.spellcasting.cantrips_known) == 3
        assert wizard.spellcasting.cantrip_choices_by_level == {}


class TestSlots:
    """Slot refresh, expend, regain and reset"""

    def test_refresh_follows_level(self, rule_set, spell_manager, wizard):
        wizard.level = 3
        spell_manager.refresh_spell_slots(wizard, rule_set.get_class('wizard'))
        assert wizard.spellcasting.spell_slots[:2] == [4, 2]

    def test_refresh_clamps_used_slots(self, rule_set, spell_manager, wizard):
        wizard.level = 3
        cls = rule_set.get_class('wizard')
        spell_manager.refresh_spell_slots(wizard, cls)
        wizard.spellcasting.used_spell_slots[1] = 2
        wizard.level = 2
        spell_manager.refresh_spell_slots(wizard, cls)
        assert wizard.spellcasting.used_spell_slots[1] == 0

    def test_refresh_drops_block_when_tables_grant_nothing(self, rule_set, engine, spell_manager):
        paladin = create(engine, 'paladin', level=2)
        paladin.level = 1
        spell_manager.refresh_spell_slots(paladin, rule_set.get_class('paladin'))
        assert paladin.spellcasting is None

    def test_expend_until_empty(self, spell_manager, wizard):
        assert spell_manager.expend_spell_slot(wizard, 1) == (True, "Expended a level 1 spell slot (1 remaining)")
        assert spell_manager.expend_spell_slot(wizard, 1)[0]
        changed, message = spell_manager.expend_spell_slot(wizard, 1)
        assert not changed
        assert message == "No level 1 spell slots remaining"
        assert wizard.spellcasting.used_spell_slots[0] == 2

    def test_expend_level_without_slots(self, spell_manager, wizard):
        assert not spell_manager.expend_spell_slot(wizard, 3)[0]

    @pytest.mark.parametrize("slot_level", [0, 10, -1])
    def test_slot_level_out_of_range(self, spell_manager, wizard, slot_level):
        changed, message = spell_manager.expend_spell_slot(wizard, slot_level)
        assert not changed
        assert 'between 1 and 9' in message

    def test_non_caster_cannot_expend(self, engine, spell_manager):
        changed, message = spell_manager.expend_spell_slot(create(engine, 'fighter'), 1)
        assert not changed
        assert 'cannot cast spells' in message

    def test_regain(self, spell_manager, wizard):
        assert not spell_manager.regain_spell_slot(wizard, 1)[0]
        spell_manager.expend_spell_slot(wizard, 1)
        assert spell_manager.regain_spell_slot(wizard, 1)[0]
        assert wizard.spellcasting.used_spell_slots[0] == 0

    def test_reset_counts_restored_slots(self, spell_manager, wizard):
        spell_manager.expend_spell_slot(wizard, 1)
        spell_manager.expend_spell_slot(wizard, 1)
        assert spell_manager.reset_spell_slots(wizard) == 2
        assert wizard.spellcasting.used_spell_slots == [0] * 9

    def test_spell_summary(self, spell_manager, wizard):
        summary = spell_manager.get_spell_summary(wizard)
        assert summary['spellcaster']
        assert summary['slots'] == [{'level': 1, 'total': 2, 'used': 0}]
        assert summary['cantrip_limit'] == 3

    def test_spell_summary_non_caster(self, engine, spell_manager):
        assert spell_manager.get_spell_summary(create(engine, 'fighter')) == {'spellcaster': False}
