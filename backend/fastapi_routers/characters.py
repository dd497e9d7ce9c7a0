"""
Characters router - creation, listing and every engine command
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Body, Response, status
from loguru import logger

from character.exceptions import CharacterInvariantError
from character.models import Character, CreationInput
from fastapi_core.exceptions import ImportValidationException
from fastapi_models import (
    AsiRequest,
    CantripRequest,
    CharacterListResponse,
    CharacterSummary,
    CommandResponse,
    EquipRequest,
    ImportResponse,
    ItemRequest,
    RollHitPointsRequest,
    RollHitPointsResponse,
    ShortRestRequest,
    SpellSlotRequest,
    SubclassRequest,
)
from fastapi_routers.dependencies import CharacterManagerDep, CharacterSessionDep, ExportServiceDep

router = APIRouter()


# ============================================================
# Collection
# ============================================================

@router.post("/characters/", response_model=CommandResponse, status_code=status.HTTP_201_CREATED)
async def create_character(creation: CreationInput, session: CharacterSessionDep):
    """Derive a new character from creation input and store it"""
    result = session.create(creation)
    logger.info(f"Created character {result.character.id} ({result.character.name})")
    return CommandResponse.from_result(result)


@router.get("/characters/", response_model=CharacterListResponse)
async def list_characters(session: CharacterSessionDep):
    characters = [CharacterSummary.from_character(c) for c in session.list()]
    return CharacterListResponse(characters=characters, total=len(characters))


@router.get("/characters/export/")
async def export_characters(session: CharacterSessionDep, export_service: ExportServiceDep):
    """Export every character as a JSON array"""
    return Response(
        content=export_service.export_characters(session.list()),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="characters.json"'},
    )


@router.post("/characters/import/", response_model=ImportResponse, status_code=status.HTTP_201_CREATED)
async def import_characters(
    session: CharacterSessionDep,
    export_service: ExportServiceDep,
    records: List[Dict[str, Any]] = Body(...),
):
    """Validate exported records and add them under fresh ids"""
    try:
        characters = export_service.import_characters(records)
    except CharacterInvariantError as e:
        raise ImportValidationException(str(e), e.violations) from e
    added = session.add_characters(characters)
    return ImportResponse(imported=len(added), characters=[CharacterSummary.from_character(c) for c in added])


@router.post("/characters/roll-hit-points/", response_model=RollHitPointsResponse)
async def roll_hit_points(request: RollHitPointsRequest, engine: CharacterManagerDep):
    """Roll the class hit die for the rolled hit point method"""
    rolled = engine.roll_hit_points(request.class_slug, request.edition)
    return RollHitPointsResponse(class_slug=request.class_slug, rolled_hp=rolled)


# ============================================================
# Single character
# ============================================================

@router.get("/characters/{character_id}/", response_model=Character)
async def get_character(character_id: str, session: CharacterSessionDep):
    return session.get(character_id)


@router.get("/characters/{character_id}/summary/")
async def get_character_summary(character_id: str, session: CharacterSessionDep, engine: CharacterManagerDep):
    """Aggregated class, combat, inventory and spellcasting summary"""
    return engine.get_character_summary(session.get(character_id))


@router.delete("/characters/{character_id}/", status_code=status.HTTP_204_NO_CONTENT)
async def delete_character(character_id: str, session: CharacterSessionDep):
    session.delete(character_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================
# Progression
# ============================================================

@router.post("/characters/{character_id}/level-up/", response_model=CommandResponse)
async def level_up(character_id: str, session: CharacterSessionDep):
    return CommandResponse.from_result(session.run(character_id, 'level_up'))


@router.post("/characters/{character_id}/level-down/", response_model=CommandResponse)
async def level_down(character_id: str, session: CharacterSessionDep):
    return CommandResponse.from_result(session.run(character_id, 'level_down'))


@router.post("/characters/{character_id}/asi/", response_model=CommandResponse)
async def apply_asi(character_id: str, request: AsiRequest, session: CharacterSessionDep):
    result = session.run(character_id, 'apply_asi', increases=request.increases, feat=request.feat)
    return CommandResponse.from_result(result)


@router.post("/characters/{character_id}/cantrip/", response_model=CommandResponse)
async def select_cantrip(character_id: str, request: CantripRequest, session: CharacterSessionDep):
    return CommandResponse.from_result(session.run(character_id, 'select_cantrip', request.cantrip))


@router.post("/characters/{character_id}/subclass/", response_model=CommandResponse)
async def select_subclass(character_id: str, request: SubclassRequest, session: CharacterSessionDep):
    return CommandResponse.from_result(session.run(character_id, 'select_subclass', request.subclass))


# ============================================================
# Rest
# ============================================================

@router.post("/characters/{character_id}/rest/short/", response_model=CommandResponse)
async def short_rest(character_id: str, request: ShortRestRequest, session: CharacterSessionDep):
    return CommandResponse.from_result(session.run(character_id, 'short_rest', request.dice))


@router.post("/characters/{character_id}/rest/long/", response_model=CommandResponse)
async def long_rest(character_id: str, session: CharacterSessionDep):
    return CommandResponse.from_result(session.run(character_id, 'long_rest'))


# ============================================================
# Inventory
# ============================================================

@router.post("/characters/{character_id}/inventory/equip/", response_model=CommandResponse)
async def equip_item(character_id: str, request: EquipRequest, session: CharacterSessionDep):
    return CommandResponse.from_result(session.run(character_id, 'equip', request.equipment_slug))


@router.post("/characters/{character_id}/inventory/unequip/", response_model=CommandResponse)
async def unequip_item(character_id: str, request: EquipRequest, session: CharacterSessionDep):
    return CommandResponse.from_result(session.run(character_id, 'unequip', request.equipment_slug))


@router.post("/characters/{character_id}/inventory/add/", response_model=CommandResponse)
async def add_item(character_id: str, request: ItemRequest, session: CharacterSessionDep):
    result = session.run(character_id, 'add_item', request.equipment_slug, request.quantity)
    return CommandResponse.from_result(result)


@router.post("/characters/{character_id}/inventory/remove/", response_model=CommandResponse)
async def remove_item(character_id: str, request: ItemRequest, session: CharacterSessionDep):
    result = session.run(character_id, 'remove_item', request.equipment_slug, request.quantity)
    return CommandResponse.from_result(result)


# ============================================================
# Spell slots
# ============================================================

@router.post("/characters/{character_id}/spells/slots/expend/", response_model=CommandResponse)
async def expend_spell_slot(character_id: str, request: SpellSlotRequest, session: CharacterSessionDep):
    return CommandResponse.from_result(session.run(character_id, 'expend_spell_slot', request.slot_level))


@router.post("/characters/{character_id}/spells/slots/regain/", response_model=CommandResponse)
async def regain_spell_slot(character_id: str, request: SpellSlotRequest, session: CharacterSessionDep):
    return CommandResponse.from_result(session.run(character_id, 'regain_spell_slot', request.slot_level))
