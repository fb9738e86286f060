"""Shared utilities for ActiveCampaign tests."""

import re
from unittest.mock import AsyncMock, patch

import httpx

from app.activecampaign import api

CREATE_ENDPOINTS = {
    'organizations': 'organization',
    'contact/sync': 'contact',
    'fieldValues': 'fieldValue',
    'contactLists': 'contactList',
    'deals': 'deal',
    'dealCustomFieldData': 'dealCustomFieldDatum',
}


class FakeActiveCampaign:
    """
    An in-memory ActiveCampaign account. Every request made is recorded in `calls` as
    (method, endpoint, query_params, json).
    """

    def __init__(self):
        self.db = {endpoint: {} for endpoint in CREATE_ENDPOINTS}
        self.contact_fields = []
        self.deal_fields = []
        self.pipelines = []
        self.stages = []
        self.users = []
        self.calls = []

    def add_organisation(self, name: str) -> str:
        org_id = str(len(self.db['organizations']) + 1)
        self.db['organizations'][org_id] = {'id': org_id, 'name': name}
        return org_id

    def endpoints_called(self) -> list[tuple[str, str]]:
        return [(method, endpoint) for method, endpoint, _, _ in self.calls]

    def payloads(self, endpoint: str) -> list[dict]:
        return [data for method, ep, _, data in self.calls if ep == endpoint and method == 'POST']


def _response(method: str, url: str, status_code: int, json_data: dict) -> httpx.Response:
    return httpx.Response(status_code, json=json_data, request=httpx.Request(method, url))


def fake_ac_request(fake_ac: FakeActiveCampaign, error_responses: dict = None):
    """
    Create a mock ActiveCampaign request handler to replace the client's `request`.

    Args:
        fake_ac: FakeActiveCampaign instance with test data
        error_responses: Optional dict mapping (method, endpoint) tuples to error responses.
            - For HTTP errors: tuple of (status_code, response json)
            - For exceptions: Exception instance to raise
            Example: {('POST', 'deals'): (500, {'message': 'Internal Server Error'})}
                     {('GET', 'fields'): httpx.ConnectError('Connection refused')}
    """
    error_responses = error_responses or {}

    def _ac_request(*, method: str, url: str, headers: dict = None, params: dict = None, json: dict = None, **kwargs):
        endpoint = re.search(r'/api/3/(.*)$', url).group(1)
        params = params or {}
        fake_ac.calls.append((method, endpoint, params, json))

        error = error_responses.get((method, endpoint))
        if isinstance(error, Exception):
            raise error
        elif error:
            status_code, error_data = error
            return _response(method, url, status_code, error_data)

        if method == 'POST' and endpoint in CREATE_ENDPOINTS:
            key = CREATE_ENDPOINTS[endpoint]
            obj = dict(json[key])
            if endpoint == 'organizations':
                name = obj.get('name', '')
                if any(o['name'].lower() == name.lower() for o in fake_ac.db['organizations'].values()):
                    return _response(
                        method, url, 422, {'errors': [{'title': 'The organization name is already in use'}]}
                    )
            obj['id'] = str(len(fake_ac.db[endpoint]) + 1)
            fake_ac.db[endpoint][obj['id']] = obj
            return _response(method, url, 201, {key: obj})

        if method == 'GET':
            if endpoint == 'organizations':
                search = params.get('search', '').lower()
                orgs = [o for o in fake_ac.db['organizations'].values() if search in o['name'].lower()]
                return _response(method, url, 200, {'organizations': orgs})
            if endpoint == 'fields':
                return _response(method, url, 200, {'fields': fake_ac.contact_fields})
            if endpoint == 'dealCustomFieldMeta':
                return _response(method, url, 200, {'dealCustomFieldMeta': fake_ac.deal_fields})
            if endpoint == 'dealGroups':
                title = params.get('filters[title]')
                pipelines = [p for p in fake_ac.pipelines if p['title'] == title]
                return _response(method, url, 200, {'dealGroups': pipelines})
            if endpoint == 'dealStages':
                title = params.get('filters[title]')
                pipeline_id = params.get('filters[d_groupid]')
                stages = [
                    s
                    for s in fake_ac.stages
                    if s['title'] == title and (pipeline_id is None or str(s['group']) == str(pipeline_id))
                ]
                return _response(method, url, 200, {'dealStages': stages})
            if endpoint == 'users/me':
                return _response(method, url, 200, {'user': {'id': '1', 'username': 'admin'}})
            if endpoint.startswith('users/username/'):
                username = endpoint.split('/')[-1]
                user = next((u for u in fake_ac.users if u['username'] == username), None)
                if not user:
                    return _response(method, url, 404, {'message': f'No Result found for User {username}'})
                return _response(method, url, 200, {'user': user})

        return _response(method, url, 404, {'message': 'Not Found'})

    return _ac_request


def mock_ac_client(fake_ac: FakeActiveCampaign, error_responses: dict = None):
    """Patch the shared ActiveCampaign client so requests go to `fake_ac`"""
    return patch.object(api._client, 'request', new=AsyncMock(side_effect=fake_ac_request(fake_ac, error_responses)))
