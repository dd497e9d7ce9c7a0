"""
System endpoints router - health check and application info
"""

import sys
from fastapi import APIRouter, Request

from fastapi_models import HealthResponse, SystemInfo
from fastapi_routers.dependencies import RegistryDep

router = APIRouter()

SERVICE_NAME = "charforge-rules-engine"
VERSION = "1.0.0"


@router.get("/health/", response_model=HealthResponse)
def health_check(request: Request):
    """
    Health check endpoint

    Healthy once the rule set and session are loaded, degraded while
    background writes have failed, unhealthy before startup finished.
    """
    registry = getattr(request.app.state, 'registry', None)
    if registry is None or not registry.session.is_loaded:
        return HealthResponse(status="unhealthy", service=SERVICE_NAME, checks={'session_loaded': False})

    registry_status = registry.get_status()
    return HealthResponse(
        status="degraded" if registry_status['notifications'] else "healthy",
        service=SERVICE_NAME,
        uptime=registry_status['uptime'],
        checks=registry_status,
    )


@router.get("/info/", response_model=SystemInfo)
def app_info(request: Request, registry: RegistryDep):
    """Application information"""
    settings = getattr(request.app.state, 'settings', None)
    rule_set = registry.rule_set
    return SystemInfo(
        version=VERSION,
        python_version=sys.version,
        settings=settings.get_info() if settings else {},
        rule_set={
            'races': len(rule_set.list_races()),
            'classes': len(rule_set.list_classes()),
            'backgrounds': len(rule_set.list_backgrounds()),
            'spells': len(rule_set.list_spells()),
        },
    )
