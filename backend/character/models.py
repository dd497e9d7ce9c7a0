"""
Character aggregate, creation input and command result models

The Character is the persisted record; every engine command takes one and
returns a new one. ``Character.check_invariants`` is run on validation and at
the end of every command.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gamedata.models import ItemGrant
from gamedata.rule_set import ABILITIES, SKILL_TO_ABILITY, SLOT_LEVELS
from .exceptions import CharacterInvariantError


MAX_EQUIPPED_WEAPONS = 2
DEFAULT_STARTING_GOLD = 15
MAX_BACKGROUND_BONUS = 2

Edition = Literal['2014', '2024']


def ability_modifier(score: int) -> int:
    """Ability modifier: floor((score - 10) / 2)"""
    return (score - 10) // 2


def new_character_id() -> str:
    return uuid4().hex


# Character components

class AbilityScore(BaseModel):
    score: int = Field(..., ge=1, le=30)
    modifier: int

    @classmethod
    def from_score(cls, score: int) -> 'AbilityScore':
        return cls(score=score, modifier=ability_modifier(score))


class SkillEntry(BaseModel):
    proficient: bool = False
    expertise: bool = False
    value: int = 0


class SkillBonusEntry(BaseModel):
    """Adds an ability modifier to a skill on top of proficiency"""
    skill: str
    ability: str
    source: str = ''


class HitDice(BaseModel):
    current: int = Field(..., ge=0)
    max: int = Field(..., ge=1)
    die_type: int = Field(..., ge=4, le=12)


class InventoryItem(BaseModel):
    equipment_slug: str
    quantity: int = Field(1, ge=0)
    equipped: bool = False


class Currency(BaseModel):
    cp: int = 0
    sp: int = 0
    ep: int = 0
    gp: int = 0
    pp: int = 0


class Spellcasting(BaseModel):
    ability: str
    spell_save_dc: int
    spell_attack_bonus: int
    spell_slots: List[int] = Field(default_factory=lambda: [0] * SLOT_LEVELS)
    used_spell_slots: List[int] = Field(default_factory=lambda: [0] * SLOT_LEVELS)
    spellcasting_type: Literal['known', 'prepared', 'wizard']
    cantrips_known: List[str] = Field(default_factory=list)
    spells_known: List[str] = Field(default_factory=list)
    spellbook: List[str] = Field(default_factory=list)
    prepared_spells: List[str] = Field(default_factory=list)
    cantrip_choices_by_level: Dict[int, List[str]] = Field(
        default_factory=dict, description="Cantrips picked at each level-up, removed again on level down"
    )
    bonus_cantrips: int = Field(0, ge=0, description="Extra cantrips granted by class options")


class AsiChoice(BaseModel):
    increases: Dict[str, int] = Field(default_factory=dict)
    feat: Optional[str] = None


class AsiPending(BaseModel):
    type: Literal['asi'] = 'asi'


class CantripPending(BaseModel):
    type: Literal['cantrip'] = 'cantrip'
    count: int = Field(1, ge=1)


class SubclassPending(BaseModel):
    type: Literal['subclass'] = 'subclass'
    options: List[str] = Field(default_factory=list)


PendingChoice = Annotated[Union[AsiPending, CantripPending, SubclassPending], Field(discriminator='type')]


class ProficiencySet(BaseModel):
    armor: List[str] = Field(default_factory=list)
    weapons: List[str] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)
    saving_throws: List[str] = Field(default_factory=list)


class FeaturesAndTraits(BaseModel):
    personality: str = ''
    ideals: str = ''
    bonds: str = ''
    flaws: str = ''
    class_features: List[str] = Field(default_factory=list)
    racial_traits: List[str] = Field(default_factory=list)


class Character(BaseModel):
    """Fully derived, persisted character record"""
    model_config = ConfigDict(extra='ignore')

    # Identity
    id: str = Field(default_factory=new_character_id)
    name: str
    race: str
    race_slug: str
    lineage_slug: Optional[str] = None
    variant_slug: Optional[str] = None
    class_name: str
    class_slug: str
    subclass: Optional[str] = None
    level: int = Field(1, ge=1, le=20)
    alignment: str = ''
    background: str = ''
    edition: Edition = '2014'
    inspiration: bool = False

    # Abilities and skills
    abilities: Dict[str, AbilityScore]
    skills: Dict[str, SkillEntry] = Field(default_factory=dict)
    skill_bonuses: List[SkillBonusEntry] = Field(default_factory=list)

    # Combat
    armor_class: int = 10
    hit_points: int
    max_hit_points: int = Field(..., ge=1)
    hit_dice: HitDice
    speed: int = 30
    initiative: int = 0

    # Equipment
    inventory: List[InventoryItem] = Field(default_factory=list)
    equipped_armor: Optional[str] = None
    equipped_weapons: List[str] = Field(default_factory=list)
    currency: Currency = Field(default_factory=Currency)

    spellcasting: Optional[Spellcasting] = None

    # Progression bookkeeping
    proficiency_bonus: int = 2
    selected_feats: List[str] = Field(default_factory=list)
    asi_choices: Dict[int, AsiChoice] = Field(default_factory=dict)
    pending_choices: List[PendingChoice] = Field(default_factory=list)
    fighting_style: Optional[str] = None
    class_options: Dict[str, str] = Field(default_factory=dict)

    proficiencies: ProficiencySet = Field(default_factory=ProficiencySet)
    languages: List[str] = Field(default_factory=list)
    features_and_traits: FeaturesAndTraits = Field(default_factory=FeaturesAndTraits)

    @model_validator(mode='after')
    def _validate_invariants(self) -> 'Character':
        self.check_invariants()
        return self

    def ability_mod(self, ability: str) -> int:
        entry = self.abilities.get(ability)
        return entry.modifier if entry else 0

    def find_item(self, slug: str) -> Optional[InventoryItem]:
        return next((item for item in self.inventory if item.equipment_slug == slug), None)

    def invariant_violations(self) -> List[str]:
        """
        Collect every consistency rule the record breaks

        Returns:
            Human readable violations, empty when the record is consistent
        """
        problems: List[str] = []

        if not 1 <= self.level <= 20:
            problems.append(f"level {self.level} outside [1, 20]")
        if self.max_hit_points < 1:
            problems.append(f"max_hit_points {self.max_hit_points} below 1")
        if not 0 <= self.hit_points <= self.max_hit_points:
            problems.append(f"hit_points {self.hit_points} outside [0, {self.max_hit_points}]")
        if not 0 <= self.hit_dice.current <= self.hit_dice.max:
            problems.append(f"hit_dice.current {self.hit_dice.current} outside [0, {self.hit_dice.max}]")

        for ability in ABILITIES:
            entry = self.abilities.get(ability)
            if entry is None:
                problems.append(f"missing ability {ability}")
            elif entry.modifier != ability_modifier(entry.score):
                problems.append(f"{ability} modifier {entry.modifier} does not match score {entry.score}")

        for skill_name, entry in self.skills.items():
            ability = SKILL_TO_ABILITY.get(skill_name)
            if ability is None:
                problems.append(f"unknown skill {skill_name}")
                continue
            expected = self.ability_mod(ability)
            if entry.proficient:
                expected += self.proficiency_bonus * (2 if entry.expertise else 1)
            expected += sum(self.ability_mod(b.ability) for b in self.skill_bonuses if b.skill == skill_name)
            if entry.value != expected:
                problems.append(f"skill {skill_name} value {entry.value} should be {expected}")

        slugs = [item.equipment_slug for item in self.inventory]
        if len(slugs) != len(set(slugs)):
            problems.append("inventory lines are not merged by slug")
        equipped_slugs = set(self.equipped_weapons)
        if self.equipped_armor:
            equipped_slugs.add(self.equipped_armor)
        if len(self.equipped_weapons) > MAX_EQUIPPED_WEAPONS:
            problems.append(f"{len(self.equipped_weapons)} weapons equipped, at most {MAX_EQUIPPED_WEAPONS} allowed")
        for item in self.inventory:
            if item.equipped != (item.equipment_slug in equipped_slugs):
                problems.append(f"inventory line {item.equipment_slug} equipped flag out of sync")
        for slug in equipped_slugs:
            if slug not in slugs:
                problems.append(f"equipped item {slug} is not in the inventory")

        sc = self.spellcasting
        if sc is not None:
            if len(sc.spell_slots) != SLOT_LEVELS or len(sc.used_spell_slots) != SLOT_LEVELS:
                problems.append("spell slot arrays must have nine entries")
            else:
                for i, (used, total) in enumerate(zip(sc.used_spell_slots, sc.spell_slots)):
                    if not 0 <= used <= total:
                        problems.append(f"used spell slots at level {i + 1} ({used}) exceed {total}")

        return problems

    def check_invariants(self):
        """Raise CharacterInvariantError when the record is inconsistent"""
        problems = self.invariant_violations()
        if problems:
            raise CharacterInvariantError(problems)


# Creation input

class EquipmentChoiceSelection(BaseModel):
    choice_id: str
    options: List[List[ItemGrant]] = Field(default_factory=list)
    selected: Optional[int] = Field(None, ge=0, description="Index into options, None when unresolved")


class StartingItem(BaseModel):
    equipment_slug: str
    quantity: int = Field(1, ge=1)
    equipped: bool = False


class SpellSelection(BaseModel):
    selected_cantrips: List[str] = Field(default_factory=list)
    known_spells: List[str] = Field(default_factory=list)
    prepared_spells: List[str] = Field(default_factory=list)
    spellbook: List[str] = Field(default_factory=list)
    daily_prepared: List[str] = Field(default_factory=list)


class CreationInput(BaseModel):
    """Raw choices collected by the creation wizard"""
    name: str = Field(..., min_length=1)
    race_slug: str
    class_slug: str
    subclass_slug: Optional[str] = None
    lineage_slug: Optional[str] = None
    variant_slug: Optional[str] = None
    abilities: Dict[str, int] = Field(..., description="Raw ability scores before racial bonuses")
    ability_method: str = 'standard-array'
    background: Optional[str] = None
    background_ability_bonuses: Dict[str, int] = Field(default_factory=dict)
    alignment: str = ''
    selected_skills: List[str] = Field(default_factory=list)
    expertise_skills: List[str] = Field(default_factory=list)
    equipment_choices: List[EquipmentChoiceSelection] = Field(default_factory=list)
    starting_inventory: List[StartingItem] = Field(default_factory=list)
    spell_selection: SpellSelection = Field(default_factory=SpellSelection)
    selected_feats: List[str] = Field(default_factory=list)
    selected_fighting_style: Optional[str] = None
    class_options: Dict[str, str] = Field(default_factory=dict)
    known_languages: List[str] = Field(default_factory=list)
    personality: str = ''
    ideals: str = ''
    bonds: str = ''
    flaws: str = ''
    hp_calculation_method: Literal['max', 'rolled'] = 'max'
    rolled_hp: Optional[int] = Field(None, ge=1)
    level: int = Field(1, ge=1, le=20)
    edition: Edition = '2014'
    starting_gold: int = Field(DEFAULT_STARTING_GOLD, ge=0)

    @field_validator('abilities')
    @classmethod
    def _all_six_abilities(cls, value: Dict[str, int]) -> Dict[str, int]:
        missing = [a for a in ABILITIES if a not in value]
        if missing:
            raise ValueError(f"missing ability scores: {', '.join(missing)}")
        for ability, score in value.items():
            if ability not in ABILITIES:
                raise ValueError(f"unknown ability {ability}")
            if not 1 <= score <= 30:
                raise ValueError(f"{ability} score {score} outside [1, 30]")
        return value

    @field_validator('background_ability_bonuses')
    @classmethod
    def _known_bonus_abilities(cls, value: Dict[str, int]) -> Dict[str, int]:
        unknown = [a for a in value if a not in ABILITIES]
        if unknown:
            raise ValueError(f"unknown ability {', '.join(unknown)}")
        for ability, bonus in value.items():
            if not 0 <= bonus <= MAX_BACKGROUND_BONUS:
                raise ValueError(f"{ability} background bonus {bonus} outside [0, {MAX_BACKGROUND_BONUS}]")
        return value


# Command results

class RestSummary(BaseModel):
    rest_type: Literal['short', 'long']
    rolls: List[int] = Field(default_factory=list)
    hit_points_restored: int = 0
    hit_dice_spent: int = 0
    hit_dice_restored: int = 0
    spell_slots_restored: int = 0


@dataclass
class CommandResult:
    """
    Outcome of one engine command

    ``changed`` is False for boundary no-ops, in which case ``character`` is
    the input record and ``message`` says why nothing happened.
    """
    character: Character
    message: Optional[str] = None
    pending: List[Any] = field(default_factory=list)
    changed: bool = True
    summary: Optional[RestSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'character': self.character.model_dump(mode='json'),
            'message': self.message,
            'pending_choices': [p.model_dump() for p in self.pending],
            'changed': self.changed,
            'summary': self.summary.model_dump() if self.summary else None,
        }
