from typing import Optional, TypeVar, Generic

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelSchemaBase(BaseModel):
    """Base for records exchanged with the host application (camelCase keys)."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        allow_inf_nan=False,
    )

    def to_record(self) -> dict:
        return self.model_dump(mode='json', by_alias=True)


class DataResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str = ''
    data: Optional[T] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def success_response(self, data: T):
        self.success = True
        self.message = 'Success'
        self.data = data
        return self
