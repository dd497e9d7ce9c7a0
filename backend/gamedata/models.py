"""
Pydantic records for the static rule data
Every record is frozen; the rule set is shared across commands and never mutated.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class RuleRecord(BaseModel):
    """Base for all rule records"""
    model_config = ConfigDict(frozen=True, extra='ignore')


class ItemGrant(RuleRecord):
    """An equipment slug and how many of it"""
    equipment_slug: str
    quantity: int = Field(1, ge=0)


class Proficiencies(RuleRecord):
    armor: List[str] = Field(default_factory=list)
    weapons: List[str] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)


class RaceOption(RuleRecord):
    """A variant or lineage of a base race"""
    slug: str
    name: str
    ability_bonuses: Dict[str, int] = Field(default_factory=dict)
    racial_traits: List[str] = Field(default_factory=list)


class Race(RuleRecord):
    slug: str
    name: str
    speed: int = 30
    ability_bonuses: Dict[str, int] = Field(default_factory=dict)
    hp_bonus_per_level: int = Field(0, description="Extra hit points per character level at creation (dwarven toughness)")
    racial_traits: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    skill_proficiencies: List[str] = Field(default_factory=list)
    proficiencies: Proficiencies = Field(default_factory=Proficiencies)
    variants: List[RaceOption] = Field(default_factory=list)
    lineages: List[RaceOption] = Field(default_factory=list)

    def get_variant(self, slug: Optional[str]) -> Optional[RaceOption]:
        return next((v for v in self.variants if v.slug == slug), None) if slug else None

    def get_lineage(self, slug: Optional[str]) -> Optional[RaceOption]:
        return next((lin for lin in self.lineages if lin.slug == slug), None) if slug else None


class SkillBonus(RuleRecord):
    """Adds an ability modifier on top of a skill's normal value"""
    skill: str
    ability: str


class ClassOption(RuleRecord):
    """One choice of a class option such as a cleric's divine order"""
    name: str
    bonus_cantrips: int = 0
    skill_bonuses: List[SkillBonus] = Field(default_factory=list)
    armor_proficiencies: List[str] = Field(default_factory=list)
    weapon_proficiencies: List[str] = Field(default_factory=list)


class Subclass(RuleRecord):
    slug: str
    name: str
    features_by_level: Dict[int, List[str]] = Field(default_factory=dict)


class SpellcastingInfo(RuleRecord):
    ability: str
    type: str = Field(..., description="known, prepared or wizard")
    slot_progression: str = Field(..., description="Key into the spell slot progression tables")


class EquipmentChoiceDef(RuleRecord):
    choice_id: str
    description: str = ""
    options: List[List[ItemGrant]] = Field(default_factory=list)


class CharacterClass(RuleRecord):
    slug: str
    name: str
    hit_die: int = Field(..., ge=4, le=12)
    saving_throws: List[str] = Field(default_factory=list)
    proficiencies: Proficiencies = Field(default_factory=Proficiencies)
    num_skill_choices: int = 2
    skill_proficiencies: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    class_features: List[str] = Field(default_factory=list)
    features_by_level: Dict[int, List[str]] = Field(default_factory=dict)
    asi_levels: Optional[List[int]] = None
    subclass_level: int = 3
    subclasses: List[Subclass] = Field(default_factory=list)
    spellcasting: Optional[SpellcastingInfo] = None
    equipment_choices: List[EquipmentChoiceDef] = Field(default_factory=list)
    options: Dict[str, Dict[str, ClassOption]] = Field(default_factory=dict)
    edition_overrides: Dict[str, dict] = Field(default_factory=dict)

    def get_subclass(self, slug: Optional[str]) -> Optional[Subclass]:
        if not slug:
            return None
        return next((s for s in self.subclasses if s.slug == slug or s.name == slug), None)

    def features_up_to(self, level: int) -> List[str]:
        """Level 1 features followed by every feature gained up to ``level``"""
        features = list(self.class_features)
        for feature_level in sorted(self.features_by_level):
            if 1 < feature_level <= level:
                features.extend(self.features_by_level[feature_level])
        return features


class Background(RuleRecord):
    slug: str
    name: str
    skill_proficiencies: List[str] = Field(default_factory=list)
    tool_proficiencies: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list, description="Fixed languages only")
    language_choices: int = 0
    feature: Optional[str] = None
    equipment: List[ItemGrant] = Field(default_factory=list)


class Equipment(RuleRecord):
    slug: str
    name: str
    category: str = Field(..., description="armor, weapon, gear or tool")
    armor_category: Optional[str] = Field(None, description="Light, Medium, Heavy or Shield")
    base_ac: Optional[int] = None
    max_dex_bonus: Optional[int] = None
    weapon_category: Optional[str] = None
    damage: Optional[str] = None
    properties: List[str] = Field(default_factory=list)
    weight: float = 0
    cost_gp: float = 0

    @property
    def is_shield(self) -> bool:
        return self.category == 'armor' and self.armor_category == 'Shield'

    @property
    def is_body_armor(self) -> bool:
        return self.category == 'armor' and not self.is_shield

    @property
    def is_weapon(self) -> bool:
        return self.category == 'weapon'


class Spell(RuleRecord):
    slug: str
    name: str
    level: int = Field(..., ge=0, le=9)
    school: str = ""
    classes: List[str] = Field(default_factory=list)


class Feat(RuleRecord):
    slug: str
    name: str
    prerequisite: Optional[str] = None
    description: str = ""


class EquipmentTier(RuleRecord):
    min_level: int = Field(..., ge=1, le=20)
    items: List[ItemGrant] = Field(default_factory=list)


class RuleTables(RuleRecord):
    """Level-indexed tables; index 0 is character level 1"""
    proficiency_bonus_by_level: List[int]
    default_asi_levels: List[int] = Field(default_factory=lambda: [4, 8, 12, 16, 19])
    spell_slot_progressions: Dict[str, List[List[int]]] = Field(default_factory=dict)
    cantrips_known_by_class: Dict[str, List[int]] = Field(default_factory=dict)
    spells_known_by_class: Dict[str, List[int]] = Field(default_factory=dict)
    equipment_packages: Dict[str, List[EquipmentTier]] = Field(default_factory=dict)
