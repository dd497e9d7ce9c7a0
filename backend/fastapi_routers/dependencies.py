"""
Lightweight FastAPI dependencies reading the application's session registry
"""

from typing import Annotated
from fastapi import Depends, Request

from loguru import logger

from character.character_manager import CharacterManager
from character.character_session import CharacterSession
from character.export_service import CharacterExportService
from fastapi_core.exceptions import SystemNotReadyException
from fastapi_core.session_registry import SessionRegistry


def get_registry(request: Request) -> SessionRegistry:
    """
    Get the registry built by the lifespan handler

    Raises:
        SystemNotReadyException: If the application has not finished starting
    """
    registry = getattr(request.app.state, 'registry', None)
    if registry is None or not registry.session.is_loaded:
        logger.info(f"Request for {request.url.path} but system not ready")
        raise SystemNotReadyException()
    return registry


def get_character_session(request: Request) -> CharacterSession:
    return get_registry(request).session


def get_character_manager(request: Request) -> CharacterManager:
    return get_registry(request).engine


def get_export_service(request: Request) -> CharacterExportService:
    return get_registry(request).export_service


# FastAPI dependency annotations
RegistryDep = Annotated[SessionRegistry, Depends(get_registry)]
CharacterSessionDep = Annotated[CharacterSession, Depends(get_character_session)]
CharacterManagerDep = Annotated[CharacterManager, Depends(get_character_manager)]
ExportServiceDep = Annotated[CharacterExportService, Depends(get_export_service)]
