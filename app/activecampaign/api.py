import asyncio
from typing import Optional
from urllib.parse import quote

import httpx
import logfire
from httpx_limiter import AsyncRateLimitedTransport, Rate

from app.activecampaign.models import ActiveCampaignSettings
from app.core.config import settings as app_settings
from app.core.logging import get_logger
from app.exceptions import RemoteRequestError

logger = get_logger('activecampaign')

_transport = AsyncRateLimitedTransport.create(
    Rate.create(magnitude=app_settings.ac_api_max_rate, duration=app_settings.ac_api_rate_period)
)
_client = httpx.AsyncClient(
    transport=_transport
)  # need to use a singleton client to keep the rate limiting throughout all the requests.

RATE_LIMIT_STATUS_CODE = 429


def _error_body(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return response.text


def _items(result: dict, key: str) -> list[dict]:
    """The objects listed under `key`, ignoring anything that isn't an object"""
    items = result.get(key)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


async def ac_request(
    settings: ActiveCampaignSettings,
    endpoint: str,
    *,
    method: str = 'GET',
    query_params: Optional[dict] = None,
    data: Optional[dict] = None,
    retry: int = 0,
) -> dict:
    """
    Make a request to the ActiveCampaign API v3.

    Args:
        settings: The integration's settings, for the account URL and API token
        endpoint: The API endpoint (without /api/3/ prefix)
        method: HTTP method (GET, POST, PUT, DELETE)
        query_params: Query parameters dict
        data: Request body data
        retry: Internal retry counter

    Returns:
        Response JSON data

    Raises:
        RemoteRequestError: for error statuses, transport errors and bodies that aren't JSON
    """
    url = f'{settings.api_url.rstrip("/")}/api/3/{endpoint}'
    headers = {'Api-Token': settings.api_token, 'Content-Type': 'application/json', 'Accept': 'application/json'}

    with logfire.span(f'{method} {endpoint}'):
        try:
            response = await _client.request(
                method=method,
                url=url,
                headers=headers,
                params=query_params,
                json=data,
                timeout=app_settings.ac_request_timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f'ActiveCampaign request failed method={method} url={endpoint}: {e!r}')
            raise RemoteRequestError(f'Request to {endpoint} failed: {e!r}') from e

        logger.info(f'Request method={method} url={endpoint} status_code={response.status_code}')
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if (
                app_settings.ac_api_enable_retry
                and e.response.status_code == RATE_LIMIT_STATUS_CODE
                and retry < app_settings.ac_api_max_retry
            ):
                wait_time = (retry + 1) * 2
                logger.warning(
                    f'ActiveCampaign API rate limit for {method} {endpoint}, '
                    f'retry {retry + 1}/{app_settings.ac_api_max_retry}, waiting {wait_time}s...'
                )
                await asyncio.sleep(wait_time)
                return await ac_request(
                    settings, endpoint, method=method, query_params=query_params, data=data, retry=retry + 1
                )
            error_data = _error_body(response)
            logger.error(f'ActiveCampaign API error: {e}. Response: {error_data}')
            raise RemoteRequestError(
                f'{method} {endpoint} returned {response.status_code}',
                status_code=response.status_code,
                response_body=error_data,
            ) from e

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteRequestError(
                f'{method} {endpoint} returned invalid JSON',
                status_code=response.status_code,
                response_body=response.text,
            ) from e
        if not isinstance(data, dict):
            logger.error(f'ActiveCampaign returned an unexpected body for {method} {endpoint}: {data!r}')
            raise RemoteRequestError(
                f'{method} {endpoint} returned an unexpected body', status_code=response.status_code, response_body=data
            )
        return data


async def create_organisation(settings: ActiveCampaignSettings, org_data: dict) -> dict:
    return await ac_request(settings, 'organizations', method='POST', data={'organization': org_data})


async def search_organisations(settings: ActiveCampaignSettings, name: str) -> list[dict]:
    """Organisations whose name contains `name`, exact matching is left to the caller"""
    result = await ac_request(settings, 'organizations', query_params={'search': name})
    return _items(result, 'organizations')


async def sync_contact(settings: ActiveCampaignSettings, contact_data: dict) -> dict:
    """Creates the contact, or updates the existing one with the same email"""
    return await ac_request(settings, 'contact/sync', method='POST', data={'contact': contact_data})


async def create_contact_field_value(settings: ActiveCampaignSettings, contact_id, field_id: int, value) -> dict:
    return await ac_request(
        settings,
        'fieldValues',
        method='POST',
        data={'fieldValue': {'contact': contact_id, 'field': field_id, 'value': value}},
    )


async def add_contact_to_list(settings: ActiveCampaignSettings, contact_id, list_id) -> dict:
    return await ac_request(
        settings,
        'contactLists',
        method='POST',
        data={'contactList': {'list': list_id, 'contact': contact_id, 'status': 1}},
    )


async def create_deal(settings: ActiveCampaignSettings, deal_data: dict) -> dict:
    return await ac_request(settings, 'deals', method='POST', data={'deal': deal_data})


async def create_deal_field_value(settings: ActiveCampaignSettings, deal_id, field_id: int, value) -> dict:
    return await ac_request(
        settings,
        'dealCustomFieldData',
        method='POST',
        data={'dealCustomFieldDatum': {'dealId': deal_id, 'customFieldId': field_id, 'fieldValue': value}},
    )


async def get_contact_fields(settings: ActiveCampaignSettings) -> list[dict]:
    result = await ac_request(settings, 'fields', query_params={'limit': app_settings.ac_fields_limit})
    return _items(result, 'fields')


async def get_deal_fields(settings: ActiveCampaignSettings) -> list[dict]:
    result = await ac_request(settings, 'dealCustomFieldMeta', query_params={'limit': app_settings.ac_fields_limit})
    return _items(result, 'dealCustomFieldMeta')


async def get_pipelines(settings: ActiveCampaignSettings, title: str) -> list[dict]:
    result = await ac_request(settings, 'dealGroups', query_params={'filters[title]': title})
    return _items(result, 'dealGroups')


async def get_stages(settings: ActiveCampaignSettings, title: str, pipeline_id: Optional[int] = None) -> list[dict]:
    query_params = {'filters[title]': title}
    if pipeline_id:
        query_params['filters[d_groupid]'] = pipeline_id
    result = await ac_request(settings, 'dealStages', query_params=query_params)
    return _items(result, 'dealStages')


async def get_user_by_username(settings: ActiveCampaignSettings, username: str) -> Optional[dict]:
    result = await ac_request(settings, f'users/username/{quote(username, safe="")}')
    user = result.get('user')
    return user if isinstance(user, dict) else None


async def get_current_user(settings: ActiveCampaignSettings) -> dict:
    return await ac_request(settings, 'users/me')
