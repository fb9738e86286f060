import logfire
from pydantic import ValidationError

from app.exceptions import ConnectionCheckError, RemoteRequestError
from app.integrations.base import CRMIntegration, PushResult
from app.integrations.fields import FieldDescriptor, FieldType, translate_field_type
from app.integrations.mapping import EntityBucket, EntityTag, FieldMapper
from app.sharpspring import api
from app.sharpspring.models import SharpSpringSettings, SSField

FIELD_TYPE_MAP = {
    'text': FieldType.STRING,
    'string': FieldType.STRING,
    'picklist': FieldType.STRING,
    'phone': FieldType.STRING,
    'url': FieldType.STRING,
    'textarea': FieldType.STRING,
    'country': FieldType.STRING,
    'checkbox': FieldType.STRING,
    'date': FieldType.STRING,
    'bit': FieldType.STRING,
    'hidden': FieldType.STRING,
    'state': FieldType.STRING,
    'radio': FieldType.STRING,
    'datetime': FieldType.STRING,
    'int': FieldType.NUMERIC,
    'boolean': FieldType.BOOLEAN,
}

LEAD_FIELDS = [
    FieldDescriptor(key='contact___emailAddress', label='Email'),
    FieldDescriptor(key='contact___firstName', label='First Name'),
    FieldDescriptor(key='contact___lastName', label='Last Name'),
    FieldDescriptor(key='contact___website', label='Website'),
    FieldDescriptor(key='contact___phoneNumber', label='Phone Number', type=FieldType.NUMERIC),
    FieldDescriptor(key='contact___phoneNumberExtension', label='Phone Number Extension', type=FieldType.NUMERIC),
    FieldDescriptor(key='contact___faxNumber', label='Fax Number', type=FieldType.NUMERIC),
    FieldDescriptor(key='contact___mobilePhoneNumber', label='Mobile Phone Number', type=FieldType.NUMERIC),
    FieldDescriptor(key='contact___street', label='Street Address'),
    FieldDescriptor(key='contact___city', label='City'),
    FieldDescriptor(key='contact___state', label='State'),
    FieldDescriptor(key='contact___zipcode', label='Zip', type=FieldType.NUMERIC),
    FieldDescriptor(key='contact___companyName', label='Company Name'),
    FieldDescriptor(key='contact___industry', label='Industry'),
    FieldDescriptor(key='contact___description', label='Description'),
    FieldDescriptor(key='contact___title', label='Title'),
]


class SharpSpringIntegration(CRMIntegration):
    """
    SharpSpring only takes leads, so only `contact___*` fields are pushed and there's nothing to resolve on save.
    """

    kind = 'sharpspring'
    title = 'SharpSpring'
    settings_model = SharpSpringSettings
    credential_fields = ('account_id', 'secret_key')
    secret_fields = ('secret_key',)

    settings: SharpSpringSettings

    @property
    def mapper(self) -> FieldMapper:
        return FieldMapper((EntityTag.CONTACT,))

    async def sync_entities(self, buckets: dict[EntityTag, EntityBucket]) -> PushResult:
        self.require_credentials()
        result = PushResult()
        contact = buckets.get(EntityTag.CONTACT)
        if not contact or contact.is_empty:
            result.success = False
            return result

        lead = dict(contact.properties)
        lead.update({str(field_id): value for field_id, value in contact.custom_fields})
        with logfire.span('sharpspring sync_entities'):
            try:
                response = await api.create_leads(self.settings, [lead])
            except RemoteRequestError as e:
                self.log_error('Error creating lead', e, result)
                result.success = False
                return result

        self.logger.info(f'SharpSpring createLeads response: {response}')
        errors = api.get_result(response).get('error')
        if not isinstance(errors, list) or errors:
            self.log_error(f'SharpSpring rejected the lead: {errors}', result=result)
            result.success = False
            return result

        creates = api.get_result(response).get('creates')
        if isinstance(creates, list) and creates and isinstance(creates[0], dict):
            result.contact_id = creates[0].get('id')
        return result

    async def check_connection(self) -> bool:
        self.require_credentials()
        try:
            response = await api.ss_request(self.settings, 'getFields', {'where': {}, 'limit': 1})
        except RemoteRequestError as e:
            raise ConnectionCheckError(f'Could not connect to SharpSpring: {e}') from e
        return 'field' in api.get_result(response)

    async def fetch_fields(self) -> list[FieldDescriptor]:
        fields = list(LEAD_FIELDS)
        if not self.has_credentials:
            self.logger.warning('Missing credentials for SharpSpring integration, returning the default fields')
            return fields

        try:
            remote_fields = await api.get_fields(self.settings)
        except RemoteRequestError as e:
            self.log_error('Error fetching SharpSpring fields', e)
            return fields

        for data in remote_fields:
            if not isinstance(data, dict):
                continue
            try:
                ss_field = SSField(**data)
            except ValidationError as e:
                self.logger.warning(f'Skipping invalid field {data!r}: {e}')
                continue
            if not ss_field.is_writable:
                continue
            field_type = translate_field_type(ss_field.dataType, FIELD_TYPE_MAP, logger=self.logger)
            if field_type:
                fields.append(
                    FieldDescriptor(
                        key=f'contact___{ss_field.systemName}',
                        label=ss_field.label or ss_field.systemName,
                        type=field_type,
                    )
                )
        return fields

    async def resolve(self) -> SharpSpringSettings:
        return self.settings
