from datetime import datetime, timezone
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, field_validator
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from app.integrations.registry import INTEGRATION_CLASSES


class Integration(SQLModel, table=True):
    """
    A configured CRM integration. `settings` holds the target's settings (credentials, plus for ActiveCampaign the
    pipeline/stage/owner names and their resolved ids) as JSON. Always assign a new dict to `settings`, changes made
    to the dict in place aren't picked up.
    """

    KIND_ACTIVECAMPAIGN: ClassVar[str] = 'activecampaign'
    KIND_SHARPSPRING: ClassVar[str] = 'sharpspring'

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    kind: str = Field(max_length=63, index=True)
    settings: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self):
        return f'{self.name} ({self.kind})'


class IntegrationCreate(BaseModel):
    name: str
    kind: str
    settings: dict[str, Any] = {}

    @field_validator('kind')
    @classmethod
    def check_kind(cls, v):
        if v not in INTEGRATION_CLASSES:
            raise ValueError(f'kind must be one of {", ".join(INTEGRATION_CLASSES)}')
        return v
