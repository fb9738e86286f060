from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActiveCampaignSettings(BaseModel):
    """
    Settings for an ActiveCampaign integration. `pipeline`, `stage` and `owner` are what the user typed, either a
    name or an id; the matching `*_id` fields are filled in by the resolver when the settings are saved.
    """

    model_config = ConfigDict(frozen=True)

    api_token: str = ''
    api_url: str = ''
    pipeline: str = ''
    pipeline_id: Optional[int] = None
    stage: str = ''
    stage_id: Optional[int] = None
    owner: str = ''
    owner_id: Optional[int] = None

    @field_validator('pipeline', 'stage', 'owner', mode='before')
    @classmethod
    def stringify_name(cls, v):
        if v is None:
            return ''
        return str(v).strip()

    @field_validator('pipeline_id', 'stage_id', 'owner_id', mode='before')
    @classmethod
    def empty_id_to_none(cls, v):
        if v in ('', 0, '0'):
            return None
        return v


class ACField(BaseModel):
    """A contact custom field, from GET /fields"""

    id: int
    title: str
    type: str = ''
    isrequired: bool = False

    @field_validator('isrequired', mode='before')
    @classmethod
    def parse_required(cls, v):
        # Returned as "0" / "1"
        return bool(int(v)) if isinstance(v, str) and v.isdigit() else bool(v)


class ACDealField(BaseModel):
    """A deal custom field, from GET /dealCustomFieldMeta"""

    id: int
    label: str = Field(validation_alias='fieldLabel')
    type: str = Field('', validation_alias='fieldType')
    required: bool = Field(False, validation_alias='isRequired')

    @field_validator('required', mode='before')
    @classmethod
    def parse_required(cls, v):
        return bool(int(v)) if isinstance(v, str) and v.isdigit() else bool(v)
