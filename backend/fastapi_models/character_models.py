"""
Character Models - request and response bodies for the character endpoints
The Character record itself is the engine's pydantic model.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, model_validator

from character.models import Character, CommandResult, PendingChoice, RestSummary


class CharacterSummary(BaseModel):
    """Compact listing entry"""
    id: str
    name: str
    race: str
    class_name: str
    subclass: Optional[str] = None
    level: int
    hit_points: int
    max_hit_points: int
    armor_class: int
    pending_choices: int = Field(0, description="Number of unresolved pending choices")

    @classmethod
    def from_character(cls, character: Character) -> 'CharacterSummary':
        return cls(
            id=character.id,
            name=character.name,
            race=character.race,
            class_name=character.class_name,
            subclass=character.subclass,
            level=character.level,
            hit_points=character.hit_points,
            max_hit_points=character.max_hit_points,
            armor_class=character.armor_class,
            pending_choices=len(character.pending_choices),
        )


class CharacterListResponse(BaseModel):
    characters: List[CharacterSummary] = Field(default_factory=list)
    total: int = 0


class CommandResponse(BaseModel):
    """Outcome of an engine command"""
    character: Character
    message: Optional[str] = None
    pending_choices: List[PendingChoice] = Field(default_factory=list)
    changed: bool = Field(True, description="False when the command was a no-op at a boundary")
    summary: Optional[RestSummary] = None

    @classmethod
    def from_result(cls, result: CommandResult) -> 'CommandResponse':
        return cls(
            character=result.character,
            message=result.message,
            pending_choices=list(result.pending),
            changed=result.changed,
            summary=result.summary,
        )


# ============================================================
# Command Requests
# ============================================================

class AsiRequest(BaseModel):
    """Resolve a pending ability score improvement with increases or a feat"""
    increases: Optional[Dict[str, int]] = Field(None, description="Ability -> points, totalling 2")
    feat: Optional[str] = Field(None, description="Feat slug taken instead of increases")

    @model_validator(mode='after')
    def _exactly_one(self) -> 'AsiRequest':
        if bool(self.increases) == bool(self.feat):
            raise ValueError("Provide either increases or feat")
        return self


class CantripRequest(BaseModel):
    cantrip: str = Field(..., min_length=1, description="Spell slug of the cantrip")


class SubclassRequest(BaseModel):
    subclass: str = Field(..., min_length=1, description="Subclass slug")


class ShortRestRequest(BaseModel):
    dice: int = Field(..., description="Number of hit dice to spend")


class ItemRequest(BaseModel):
    equipment_slug: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class EquipRequest(BaseModel):
    equipment_slug: str = Field(..., min_length=1)


class SpellSlotRequest(BaseModel):
    slot_level: int = Field(..., description="Spell slot level, 1-9")


class RollHitPointsRequest(BaseModel):
    class_slug: str
    edition: str = '2014'


class RollHitPointsResponse(BaseModel):
    class_slug: str
    rolled_hp: int


# ============================================================
# Import / Export
# ============================================================

class ImportResponse(BaseModel):
    imported: int
    characters: List[CharacterSummary] = Field(default_factory=list)
