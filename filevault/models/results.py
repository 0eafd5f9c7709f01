from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Response payloads use camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class OperationResult(ApiModel):
    success: bool = True
    name: str
    path: str | None = None
    message: str | None = None


class SweepResult(ApiModel):
    success: bool = True
    deleted_count: int
    skipped_count: int = 0
    dry_run: bool = False
    message: str


class RestoreRequest(BaseModel):
    path: str
