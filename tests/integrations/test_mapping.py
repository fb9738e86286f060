"""
Tests for splitting a submission into entity buckets.
"""

from app.integrations.mapping import EntityTag, FieldKey, FieldMapper, parse_field_key


class TestParseFieldKey:
    def test_contact_key(self):
        assert parse_field_key('contact___email') == FieldKey(EntityTag.CONTACT, 'email')

    def test_tag_is_case_insensitive(self):
        assert parse_field_key('Deal___title') == FieldKey(EntityTag.DEAL, 'title')

    def test_british_spelling(self):
        assert parse_field_key('organisation___name') == FieldKey(EntityTag.ORGANIZATION, 'name')

    def test_splits_on_first_separator(self):
        assert parse_field_key('contact___first___name') == FieldKey(EntityTag.CONTACT, 'first___name')

    def test_malformed_keys(self):
        assert parse_field_key('email') is None
        assert parse_field_key('contact__email') is None
        assert parse_field_key('contact___') is None
        assert parse_field_key('lead___email') is None
        assert parse_field_key(123) is None

    def test_tag_not_allowed(self):
        assert parse_field_key('deal___title', (EntityTag.CONTACT,)) is None

    def test_custom_field_id(self):
        assert parse_field_key('deal___12').custom_field_id == 12
        assert parse_field_key('deal___12a').custom_field_id is None
        assert parse_field_key('contact___email').custom_field_id is None


class TestFieldMapper:
    def test_routes_fields_to_buckets(self):
        buckets = FieldMapper().map(
            {
                'contact___email': 'jane@example.com',
                'contact___7': 'Blue',
                'organization___name': 'Acme',
                'deal___title': 'Website enquiry',
                'deal___3': '42',
            }
        )
        assert buckets[EntityTag.CONTACT].properties == {'email': 'jane@example.com'}
        assert buckets[EntityTag.CONTACT].custom_fields == [(7, 'Blue')]
        assert buckets[EntityTag.ORGANIZATION].properties == {'name': 'Acme'}
        assert buckets[EntityTag.ORGANIZATION].custom_fields == []
        assert buckets[EntityTag.DEAL].properties == {'title': 'Website enquiry'}
        assert buckets[EntityTag.DEAL].custom_fields == [(3, '42')]

    def test_bad_keys_dropped(self):
        buckets = FieldMapper().map({'email': 'jane@example.com', 'foo___bar': 1, 'contact___name': 'Jane'})
        assert buckets[EntityTag.CONTACT].properties == {'name': 'Jane'}
        assert buckets[EntityTag.DEAL].is_empty
        assert buckets[EntityTag.ORGANIZATION].is_empty

    def test_empty_payload(self):
        buckets = FieldMapper().map({})
        assert set(buckets) == set(EntityTag)
        assert all(b.is_empty for b in buckets.values())

    def test_unsupported_tags_dropped(self):
        buckets = FieldMapper((EntityTag.CONTACT,)).map({'contact___email': 'a@b.com', 'deal___title': 'x'})
        assert list(buckets) == [EntityTag.CONTACT]
        assert buckets[EntityTag.CONTACT].properties == {'email': 'a@b.com'}

    def test_list_values_delimited(self):
        mapper = FieldMapper(list_delimiter='||')
        buckets = mapper.map(
            {
                'contact___interests': ['a', 'b'],
                'contact___9': ['a'],
                'contact___tags': [],
                'deal___options': ['a', 'b'],
            }
        )
        assert buckets[EntityTag.CONTACT].properties == {'interests': '||a||b||', 'tags': '||||'}
        assert buckets[EntityTag.CONTACT].custom_fields == [(9, '||a||')]
        # only contact values are delimited
        assert buckets[EntityTag.DEAL].properties == {'options': ['a', 'b']}

    def test_list_values_passed_through_without_delimiter(self):
        buckets = FieldMapper().map({'contact___interests': ['a', 'b']})
        assert buckets[EntityTag.CONTACT].properties == {'interests': ['a', 'b']}

    def test_scalars_untouched(self):
        buckets = FieldMapper(list_delimiter='||').map({'contact___age': 31, 'contact___name': 'Jane'})
        assert buckets[EntityTag.CONTACT].properties == {'age': 31, 'name': 'Jane'}
