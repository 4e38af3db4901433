"""Request body base for the JSON API."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelRequest(BaseModel):
    """Accepts camelCase keys from the client and snake_case from Python callers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
