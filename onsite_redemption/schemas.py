from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class ScanRequest(ApiModel):
    event_id: str = Field(min_length=1)
    resource_type: str = Field(min_length=1)
    resource_option_id: str = Field(min_length=1)
    code: str = ""


class RecordRequest(ScanRequest):
    force: bool = False
