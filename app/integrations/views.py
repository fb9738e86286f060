from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import ValidationError

from app.common.api.errors import HTTP400, HTTP403, HTTP404, HTTP502
from app.common.utils import get_bearer
from app.core.config import settings
from app.core.database import DBSession, get_db
from app.core.logging import get_logger
from app.exceptions import ConfigurationError, ConnectionCheckError
from app.integrations.base import CRMIntegration
from app.integrations.models import Integration, IntegrationCreate
from app.integrations.registry import build_integration

logger = get_logger('integrations')


def check_api_key(authorization: Optional[str] = Header(None)):
    if get_bearer(authorization) != settings.api_key:
        raise HTTP403('Invalid API key')


router = APIRouter(prefix='/integrations', tags=['integrations'], dependencies=[Depends(check_api_key)])


def _get_integration(integration_id: int, db: DBSession) -> Integration:
    integration = db.get(Integration, integration_id)
    if not integration:
        raise HTTP404(f'Integration {integration_id} not found')
    return integration


def _build(kind: str, integration_settings: dict) -> CRMIntegration:
    try:
        return build_integration(kind, integration_settings)
    except ValidationError as e:
        raise HTTP400(f'Invalid settings: {e}')


def _integration_data(integration: Integration, crm: CRMIntegration) -> dict:
    return {
        'id': integration.id,
        'name': integration.name,
        'kind': integration.kind,
        'settings': crm.public_settings(),
    }


async def _resolve_and_save(integration: Integration, crm: CRMIntegration, db: DBSession) -> CRMIntegration:
    """
    Resolves the settings (names to ids) then saves them, the resolved settings are what pushes will use.
    """
    resolved = await crm.resolve()
    integration.settings = resolved.model_dump(mode='json')
    integration.updated = datetime.now(timezone.utc)
    db.create(integration)
    logger.info(f'Saved settings for integration {integration.id} ({integration.kind})')
    return build_integration(integration.kind, integration.settings)


@router.post('/', name='create-integration')
async def create_integration(data: IntegrationCreate, db: DBSession = Depends(get_db)):
    crm = _build(data.kind, data.settings)
    integration = Integration(name=data.name, kind=data.kind)
    crm = await _resolve_and_save(integration, crm, db)
    return _integration_data(integration, crm)


@router.get('/{integration_id}/', name='get-integration')
async def get_integration(integration_id: int, db: DBSession = Depends(get_db)):
    integration = _get_integration(integration_id, db)
    return _integration_data(integration, _build(integration.kind, integration.settings))


@router.put('/{integration_id}/settings/', name='update-integration-settings')
async def update_integration_settings(integration_id: int, data: dict[str, Any], db: DBSession = Depends(get_db)):
    """
    Updates the integration's settings with the values given, leaving the others as they are. The settings are
    resolved again before they're saved.
    """
    integration = _get_integration(integration_id, db)
    crm = _build(integration.kind, {**integration.settings, **data})
    crm = await _resolve_and_save(integration, crm, db)
    return _integration_data(integration, crm)


@router.post('/{integration_id}/push/', name='integration-push')
async def push(integration_id: int, payload: dict[str, Any], db: DBSession = Depends(get_db)):
    """
    Push a form submission (`{'<tag>___<name>': value}`) to the integration's CRM.
    """
    integration = _get_integration(integration_id, db)
    crm = _build(integration.kind, integration.settings)
    try:
        success = await crm.push(payload)
    except ConfigurationError as e:
        logger.error(f'Push to integration {integration_id} failed: {e}')
        raise HTTP400(str(e))
    return {'success': success}


@router.get('/{integration_id}/check/', name='integration-check')
async def check_connection(integration_id: int, db: DBSession = Depends(get_db)):
    integration = _get_integration(integration_id, db)
    crm = _build(integration.kind, integration.settings)
    try:
        connected = await crm.check_connection()
    except ConfigurationError as e:
        raise HTTP400(str(e))
    except ConnectionCheckError as e:
        logger.warning(f'Connection check for integration {integration_id} failed: {e}')
        raise HTTP502(str(e))
    return {'connected': connected}


@router.get('/{integration_id}/fields/', name='integration-fields')
async def fetch_fields(integration_id: int, db: DBSession = Depends(get_db)):
    integration = _get_integration(integration_id, db)
    crm = _build(integration.kind, integration.settings)
    return [f.model_dump(mode='json') for f in await crm.fetch_fields()]
