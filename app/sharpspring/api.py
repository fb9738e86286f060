from typing import Optional

import httpx
import logfire

from app.core.config import settings as app_settings
from app.core.logging import get_logger
from app.exceptions import RemoteRequestError
from app.sharpspring.models import SharpSpringSettings

logger = get_logger('sharpspring')


async def ss_request(settings: SharpSpringSettings, method: str, params: Optional[dict] = None) -> dict:
    """
    Call a SharpSpring API method. Every call is a JSON-RPC style POST to the same URL, with the account credentials
    in the query string.

    Args:
        settings: The integration's settings, for the account id and secret key
        method: The API method, e.g. createLeads
        params: The method's params, defaults to an empty `where`

    Returns:
        Response JSON data
    """
    payload = {
        'method': method,
        'params': {'where': {}} if params is None else params,
        'id': app_settings.ss_request_id,
    }
    query_params = {'accountID': settings.account_id, 'secretKey': settings.secret_key}

    with logfire.span(f'POST {method}'):
        async with httpx.AsyncClient() as client:
            try:
                response = await client.request(
                    method='POST',
                    url=app_settings.ss_base_url,
                    params=query_params,
                    json=payload,
                    timeout=app_settings.ss_request_timeout,
                )
            except httpx.HTTPError as e:
                logger.error(f'SharpSpring request failed method={method}: {e!r}')
                raise RemoteRequestError(f'Request for {method} failed: {e!r}') from e

            logger.info(f'Request method={method} status_code={response.status_code}')
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                try:
                    error_data = response.json()
                except ValueError:
                    error_data = response.text
                logger.error(f'SharpSpring API error: {e}. Response: {error_data}')
                raise RemoteRequestError(
                    f'{method} returned {response.status_code}',
                    status_code=response.status_code,
                    response_body=error_data,
                ) from e

            try:
                data = response.json()
            except ValueError as e:
                raise RemoteRequestError(
                    f'{method} returned invalid JSON', status_code=response.status_code, response_body=response.text
                ) from e

    if not isinstance(data, dict):
        logger.error(f'SharpSpring returned an unexpected body for {method}: {data!r}')
        raise RemoteRequestError(
            f'{method} returned an unexpected body', status_code=response.status_code, response_body=data
        )
    if data.get('error'):
        # Errors with the call itself (bad credentials, unknown method) come back with a 200
        logger.error(f'SharpSpring API error for {method}: {data["error"]}')
        raise RemoteRequestError(f'{method} returned an error', status_code=response.status_code, response_body=data)
    return data


def get_result(data: dict) -> dict:
    """The `result` object of a response, empty if it's missing or isn't an object"""
    result = data.get('result')
    return result if isinstance(result, dict) else {}


async def create_leads(settings: SharpSpringSettings, leads: list[dict]) -> dict:
    return await ss_request(settings, 'createLeads', {'objects': leads})


async def get_fields(settings: SharpSpringSettings, limit: Optional[int] = None) -> list[dict]:
    params = {'where': {}}
    if limit:
        params['limit'] = limit
    fields = get_result(await ss_request(settings, 'getFields', params)).get('field')
    return fields if isinstance(fields, list) else []
