from pydantic import BaseModel, ConfigDict


class SharpSpringSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    account_id: str = ''
    secret_key: str = ''


class SSField(BaseModel):
    """A lead field, from the getFields method"""

    systemName: str
    label: str = ''
    dataType: str = ''
    readOnlyValue: bool = False
    hidden: bool = False
    calculated: bool = False

    @property
    def is_writable(self) -> bool:
        return not (self.readOnlyValue or self.hidden or self.calculated)
