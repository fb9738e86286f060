import logging

import pytest

from app.integrations.base import CRMIntegration, PushResult
from app.integrations.fields import FieldDescriptor, FieldType, translate_field_type
from app.integrations.registry import INTEGRATION_CLASSES, build_integration, get_integration_cls
from app.sharpspring.models import SharpSpringSettings

TYPE_MAP = {'text': FieldType.STRING, 'number': FieldType.NUMERIC}


class TestTranslateFieldType:
    def test_known_type(self):
        assert translate_field_type('Number', TYPE_MAP) == FieldType.NUMERIC

    def test_excluded_type(self):
        assert translate_field_type('currency', {'currency': FieldType.NUMERIC}, excluded=('currency',)) is None

    def test_unknown_type_logged(self, caplog):
        logger = logging.getLogger('relay.test')
        with caplog.at_level(logging.INFO, logger='relay.test'):
            assert translate_field_type('signature', TYPE_MAP, logger=logger) is None
        assert "Skipping field with unsupported type 'signature'" in caplog.text

    def test_missing_type(self):
        assert translate_field_type(None, TYPE_MAP) is None


class TestFieldDescriptor:
    def test_defaults(self):
        descriptor = FieldDescriptor(key='contact___email', label='Email')
        assert descriptor.model_dump(mode='json') == {
            'key': 'contact___email',
            'label': 'Email',
            'type': 'string',
            'required': False,
        }


class TestRegistry:
    def test_build(self):
        crm = build_integration('sharpspring', {'account_id': 'ACC', 'secret_key': 'shh'})
        assert crm.title == 'SharpSpring'
        assert crm.has_credentials
        assert crm.public_settings() == {'account_id': 'ACC', 'secret_key': '********'}

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match='hubspot'):
            get_integration_cls('hubspot')


class TestCRMIntegration:
    def test_incomplete_target(self):
        class PushOnly(CRMIntegration):
            kind = 'push_only'
            settings_model = SharpSpringSettings

            async def sync_entities(self, buckets):
                return PushResult()

        with pytest.raises(TypeError, match='mapper'):
            PushOnly({})

    def test_registered_targets_complete(self):
        for cls in INTEGRATION_CLASSES.values():
            assert not cls.__abstractmethods__
