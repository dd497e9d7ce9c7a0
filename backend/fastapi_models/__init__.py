"""
FastAPI Pydantic models organized by router
"""

# Shared/base models used across all routers
from .shared_models import (
    # Base responses
    ErrorResponse,
    MessageResponse,

    # System
    HealthResponse,
    SystemInfo,

    # Session
    PersistenceNotification,
    NotificationsResponse,
)

# Character endpoints
from .character_models import (
    CharacterSummary,
    CharacterListResponse,
    CommandResponse,
    AsiRequest,
    CantripRequest,
    SubclassRequest,
    ShortRestRequest,
    ItemRequest,
    EquipRequest,
    SpellSlotRequest,
    RollHitPointsRequest,
    RollHitPointsResponse,
    ImportResponse,
)

__all__ = [
    'ErrorResponse',
    'MessageResponse',
    'HealthResponse',
    'SystemInfo',
    'PersistenceNotification',
    'NotificationsResponse',
    'CharacterSummary',
    'CharacterListResponse',
    'CommandResponse',
    'AsiRequest',
    'CantripRequest',
    'SubclassRequest',
    'ShortRestRequest',
    'ItemRequest',
    'EquipRequest',
    'SpellSlotRequest',
    'RollHitPointsRequest',
    'RollHitPointsResponse',
    'ImportResponse',
]
