from typing import Any, Optional

import logfire
from pydantic import ValidationError

from app.activecampaign import api
from app.activecampaign.models import ACDealField, ACField, ActiveCampaignSettings
from app.common.utils import is_numeric
from app.core.config import settings as app_settings
from app.exceptions import ConfigurationError, ConnectionCheckError, RemoteRequestError
from app.integrations.base import CRMIntegration, PushResult
from app.integrations.fields import FieldDescriptor, FieldType, translate_field_type
from app.integrations.mapping import EntityBucket, EntityTag, FieldMapper

# ActiveCampaign answers a duplicate organisation name with a 422
DUPLICATE_STATUS_CODE = 422

MAILING_LIST_FIELD = 'mailing_list_id'

FIELD_TYPE_MAP = {
    'text': FieldType.STRING,
    'textarea': FieldType.STRING,
    'hidden': FieldType.STRING,
    'radio': FieldType.STRING,
    'dropdown': FieldType.ARRAY,
    'multiselect': FieldType.ARRAY,
    'checkbox': FieldType.ARRAY,
    'listbox': FieldType.ARRAY,
    'date': FieldType.DATETIME,
    'datetime': FieldType.DATETIME,
    'number': FieldType.NUMERIC,
}
# Currency fields need a currency and an amount, which a single form field can't give us
EXCLUDED_FIELD_TYPES = ('currency',)

CONTACT_FIELDS = [
    FieldDescriptor(key='contact___mailing_list_id', label='Mailing List ID (Contact)', type=FieldType.NUMERIC),
    FieldDescriptor(key='contact___email', label='Email (Contact)'),
    FieldDescriptor(key='contact___firstName', label='First Name (Contact)'),
    FieldDescriptor(key='contact___lastName', label='Last Name (Contact)'),
    FieldDescriptor(key='contact___phone', label='Phone (Contact)'),
]
DEAL_FIELDS = [
    FieldDescriptor(key='deal___title', label='Title (Deal)'),
    FieldDescriptor(key='deal___description', label='Description (Deal)'),
    FieldDescriptor(key='deal___value', label='Value (Deal)', type=FieldType.NUMERIC),
    FieldDescriptor(key='deal___currency', label='Currency (Deal)'),
    FieldDescriptor(key='deal___group', label='Group (Deal)'),
    FieldDescriptor(key='deal___owner', label='Owner (Deal)'),
    FieldDescriptor(key='deal___percent', label='Percent (Deal)'),
    FieldDescriptor(key='deal___stage', label='Stage (Deal)'),
    FieldDescriptor(key='deal___status', label='Status (Deal)', type=FieldType.NUMERIC),
]
ORGANIZATION_FIELDS = [
    FieldDescriptor(key='organization___name', label='Name (Organization)'),
]


def _entity_id(response: dict, entity: str) -> Optional[Any]:
    obj = response.get(entity)
    return obj.get('id') if isinstance(obj, dict) else None


class ActiveCampaignIntegration(CRMIntegration):
    kind = 'activecampaign'
    title = 'ActiveCampaign'
    settings_model = ActiveCampaignSettings
    credential_fields = ('api_url', 'api_token')
    secret_fields = ('api_token',)

    settings: ActiveCampaignSettings

    @property
    def mapper(self) -> FieldMapper:
        return FieldMapper(
            (EntityTag.CONTACT, EntityTag.ORGANIZATION, EntityTag.DEAL),
            list_delimiter=app_settings.ac_list_delimiter,
            delimited_tags=(EntityTag.CONTACT,),
        )

    async def sync_entities(self, buckets: dict[EntityTag, EntityBucket]) -> PushResult:
        """
        Syncs the buckets in dependency order: organization, then the contact (linked to the organization), then the
        deal (linked to the contact). A failure syncing one entity is logged and the others carry on without its id.
        The deal does need a pipeline and a stage though, without those we raise a ConfigurationError.
        """
        self.require_credentials()
        result = PushResult()
        empty = EntityBucket()
        org = buckets.get(EntityTag.ORGANIZATION, empty)
        contact = buckets.get(EntityTag.CONTACT, empty)
        deal = buckets.get(EntityTag.DEAL, empty)

        with logfire.span('activecampaign sync_entities'):
            if org.custom_fields:
                self.logger.warning(
                    f'Ignoring organization custom fields {[f for f, _ in org.custom_fields]}, ActiveCampaign '
                    'organizations have no custom field values'
                )
            if org.properties:
                result.organization_id = await self._sync_organisation(org, result)

            if not contact.is_empty:
                if result.organization_id:
                    contact.properties['orgid'] = result.organization_id
                result.contact_id = await self._sync_contact(contact, result)

            if not deal.is_empty:
                if not self.settings.pipeline_id:
                    raise ConfigurationError('Missing Pipeline ID for ActiveCampaign integration')
                if not self.settings.stage_id:
                    raise ConfigurationError('Missing Stage ID for ActiveCampaign integration')
                deal.properties['group'] = self.settings.pipeline_id
                deal.properties['stage'] = self.settings.stage_id
                if self.settings.owner_id:
                    deal.properties['owner'] = self.settings.owner_id
                if result.contact_id:
                    deal.properties['contact'] = result.contact_id
                result.deal_id = await self._sync_deal(deal, result)

        self.logger.info(
            f'Pushed submission to ActiveCampaign organization={result.organization_id} '
            f'contact={result.contact_id} deal={result.deal_id} errors={len(result.errors)}'
        )
        return result

    async def _sync_organisation(self, bucket: EntityBucket, result: PushResult) -> Optional[Any]:
        try:
            response = await api.create_organisation(self.settings, bucket.properties)
        except RemoteRequestError as e:
            if e.status_code != DUPLICATE_STATUS_CODE:
                self.log_error('Error creating organization', e, result)
                return None
        else:
            org_id = _entity_id(response, 'organization')
            if not org_id:
                self.log_error('ActiveCampaign did not return an id for the created organization', result=result)
            return org_id
        return await self._find_organisation(bucket.properties.get('name'), result)

    async def _find_organisation(self, name: Optional[str], result: PushResult) -> Optional[Any]:
        """
        The organization already exists, find it by name. If several share the name, the first one wins.
        """
        if not name:
            self.log_error('Organization already exists but has no name to search for', result=result)
            return None
        try:
            organisations = await api.search_organisations(self.settings, name)
        except RemoteRequestError as e:
            self.log_error(f'Error searching for organization {name!r}', e, result)
            return None
        org_id = next((o.get('id') for o in organisations if str(o.get('name', '')).lower() == name.lower()), None)
        if org_id is None:
            self.log_error(f'Organization {name!r} already exists but could not be found', result=result)
        return org_id

    async def _sync_contact(self, bucket: EntityBucket, result: PushResult) -> Optional[Any]:
        mailing_list_id = bucket.properties.pop(MAILING_LIST_FIELD, None)
        try:
            contact_id = _entity_id(await api.sync_contact(self.settings, bucket.properties), 'contact')
        except RemoteRequestError as e:
            self.log_error('Error syncing contact', e, result)
            return None
        if not contact_id:
            self.log_error('ActiveCampaign did not return an id for the synced contact', result=result)
            return None

        for field_id, value in bucket.custom_fields:
            try:
                await api.create_contact_field_value(self.settings, contact_id, field_id, value)
            except RemoteRequestError as e:
                self.log_error(f'Error setting custom field {field_id} on contact {contact_id}', e, result)

        if mailing_list_id:
            try:
                await api.add_contact_to_list(self.settings, contact_id, mailing_list_id)
            except RemoteRequestError as e:
                self.log_error(f'Error adding contact {contact_id} to mailing list {mailing_list_id}', e, result)
        return contact_id

    async def _sync_deal(self, bucket: EntityBucket, result: PushResult) -> Optional[Any]:
        try:
            deal_id = _entity_id(await api.create_deal(self.settings, bucket.properties), 'deal')
        except RemoteRequestError as e:
            self.log_error('Error creating deal', e, result)
            return None
        if not deal_id:
            self.log_error('ActiveCampaign did not return an id for the created deal', result=result)
            return None

        for field_id, value in bucket.custom_fields:
            try:
                await api.create_deal_field_value(self.settings, deal_id, field_id, value)
            except RemoteRequestError as e:
                self.log_error(f'Error setting custom field {field_id} on deal {deal_id}', e, result)
        return deal_id

    async def check_connection(self) -> bool:
        self.require_credentials()
        try:
            await api.get_current_user(self.settings)
        except RemoteRequestError as e:
            raise ConnectionCheckError(f'Could not connect to ActiveCampaign: {e}') from e
        return True

    async def fetch_fields(self) -> list[FieldDescriptor]:
        """
        The well known contact, deal and organization fields, plus the account's contact and deal custom fields.
        If a custom field request fails we log it and carry on with what we have.
        """
        contact_fields = list(CONTACT_FIELDS)
        deal_fields = list(DEAL_FIELDS)
        if not self.has_credentials:
            self.logger.warning('Missing credentials for ActiveCampaign integration, returning the default fields')
            return contact_fields + deal_fields + list(ORGANIZATION_FIELDS)

        try:
            remote_fields = await api.get_contact_fields(self.settings)
        except RemoteRequestError as e:
            self.log_error('Error fetching contact custom fields', e)
            remote_fields = []
        for data in remote_fields:
            try:
                ac_field = ACField(**data)
            except ValidationError as e:
                self.logger.warning(f'Skipping invalid contact field {data!r}: {e}')
                continue
            field_type = translate_field_type(ac_field.type, FIELD_TYPE_MAP, EXCLUDED_FIELD_TYPES, self.logger)
            if field_type:
                contact_fields.append(
                    FieldDescriptor(
                        key=f'contact___{ac_field.id}',
                        label=f'{ac_field.title} (Contact)',
                        type=field_type,
                        required=ac_field.isrequired,
                    )
                )

        try:
            remote_fields = await api.get_deal_fields(self.settings)
        except RemoteRequestError as e:
            self.log_error('Error fetching deal custom fields', e)
            remote_fields = []
        for data in remote_fields:
            try:
                ac_field = ACDealField(**data)
            except ValidationError as e:
                self.logger.warning(f'Skipping invalid deal field {data!r}: {e}')
                continue
            field_type = translate_field_type(ac_field.type, FIELD_TYPE_MAP, EXCLUDED_FIELD_TYPES, self.logger)
            if field_type:
                deal_fields.append(
                    FieldDescriptor(
                        key=f'deal___{ac_field.id}',
                        label=f'{ac_field.label} (Deal)',
                        type=field_type,
                        required=ac_field.required,
                    )
                )

        return contact_fields + deal_fields + list(ORGANIZATION_FIELDS)

    async def resolve(self) -> ActiveCampaignSettings:
        """
        Run before the settings are saved. Users enter the pipeline, stage and owner by name or by id, we look names
        up so pushes can use the ids. Anything that can't be found is cleared rather than left pointing at the
        wrong thing.
        """
        if not self.has_credentials:
            return self.settings

        with logfire.span('activecampaign resolve'):
            pipeline, pipeline_id = await self._resolve_name(
                'pipeline', self.settings.pipeline, lambda: api.get_pipelines(self.settings, self.settings.pipeline)
            )
            stage, stage_id = await self._resolve_name(
                'stage', self.settings.stage, lambda: api.get_stages(self.settings, self.settings.stage, pipeline_id)
            )
            owner, owner_id = await self._resolve_name('owner', self.settings.owner, self._lookup_owner)

        return self.settings.model_copy(
            update={
                'pipeline': pipeline,
                'pipeline_id': pipeline_id,
                'stage': stage,
                'stage_id': stage_id,
                'owner': owner,
                'owner_id': owner_id,
            }
        )

    async def _lookup_owner(self) -> list[dict]:
        user = await api.get_user_by_username(self.settings, self.settings.owner)
        return [{'id': user.get('id'), 'title': user.get('username')}] if user else []

    async def _resolve_name(self, label: str, value: str, lookup) -> tuple[str, Optional[int]]:
        """
        Returns the (name, id) to store. A numeric value is already an id. Otherwise the first item the lookup
        returns gives us both, and if there isn't one (or the lookup fails) both are cleared.
        """
        if not value:
            return '', None
        if is_numeric(value):
            return value, int(value)
        try:
            items = await lookup()
        except RemoteRequestError as e:
            self.log_error(f'Error looking up {label} {value!r}', e)
            return '', None
        if not items:
            self.logger.warning(f'No ActiveCampaign {label} found matching {value!r}')
            return '', None
        item = items[0]
        try:
            item_id = int(item['id'])
        except (KeyError, TypeError, ValueError):
            self.logger.warning(f'ActiveCampaign {label} matching {value!r} has no valid id: {item!r}')
            return '', None
        return item.get('title') or value, item_id
