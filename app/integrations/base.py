import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from pydantic import BaseModel

from app.core.logging import get_logger
from app.exceptions import ConfigurationError
from app.integrations.fields import FieldDescriptor
from app.integrations.mapping import EntityBucket, EntityTag, FieldMapper


@dataclass
class PushResult:
    """
    What happened during a push. `success` is False only when the target reports the push as failed, entities that
    failed to sync along the way are recorded in `errors` without affecting it.
    """

    organization_id: Optional[Any] = None
    contact_id: Optional[Any] = None
    deal_id: Optional[Any] = None
    errors: list[str] = field(default_factory=list)
    success: bool = True

    def __bool__(self):
        return self.success


class CRMIntegration(ABC):
    """
    Base class for a CRM target. The host only relies on four operations: push, check_connection, fetch_fields and
    resolve. The integration's settings are passed in explicitly and never changed in place, `resolve` returns a new
    settings object for the caller to persist.
    """

    kind: ClassVar[str] = NotImplemented
    title: ClassVar[str] = NotImplemented
    settings_model: ClassVar[type[BaseModel]] = NotImplemented
    credential_fields: ClassVar[tuple[str, ...]] = ()
    secret_fields: ClassVar[tuple[str, ...]] = ()

    def __init__(self, settings: BaseModel | dict, logger: Optional[logging.Logger] = None):
        if isinstance(settings, dict):
            settings = self.settings_model(**settings)
        self.settings = settings
        self.logger = logger or get_logger(self.kind)

    @property
    @abstractmethod
    def mapper(self) -> FieldMapper:
        """The mapper configured with the tags and list handling this target accepts"""

    @property
    def has_credentials(self) -> bool:
        return all(getattr(self.settings, f, None) for f in self.credential_fields)

    def require_credentials(self):
        if not self.has_credentials:
            missing = ', '.join(f for f in self.credential_fields if not getattr(self.settings, f, None))
            raise ConfigurationError(f'Missing {missing} for {self.title} integration')

    def log_error(self, message: str, exc: Optional[Exception] = None, result: Optional[PushResult] = None):
        """
        Logs an error with whatever detail we have about the response, and records it against the push result.
        """
        response_body = getattr(exc, 'response_body', None)
        if exc is not None:
            message = f'{message}: {exc}'
        if response_body is not None:
            message = f'{message}. Response: {response_body}'
        self.logger.error(message)
        if result is not None:
            result.errors.append(message)

    async def push(self, payload: dict[str, Any]) -> bool:
        """
        Pushes a form submission to the CRM, returning whether the push succeeded.
        """
        result = await self.sync_entities(self.mapper.map(payload))
        return result.success

    @abstractmethod
    async def sync_entities(self, buckets: dict[EntityTag, EntityBucket]) -> PushResult:
        """Pushes the mapped buckets, in whatever order the target needs them created"""

    @abstractmethod
    async def check_connection(self) -> bool:
        """True if the CRM accepts the credentials, raises ConnectionCheckError if it can't be reached"""

    @abstractmethod
    async def fetch_fields(self) -> list[FieldDescriptor]:
        """The fields a form can be mapped onto"""

    @abstractmethod
    async def resolve(self) -> BaseModel:
        """A copy of the settings with names resolved to ids, ready to be saved"""

    def public_settings(self) -> dict:
        """The settings with secrets masked, safe to return to the host"""
        data = self.settings.model_dump(mode='json')
        for f in self.secret_fields:
            if data.get(f):
                data[f] = '********'
        return data
