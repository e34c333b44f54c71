"""Base model for schemas the dashboard reads and writes.

The dashboard speaks camelCase (``trackingToken``, ``memberName``,
``emailSent``). Python code keeps snake_case attribute names; responses are
serialized under the camelCase alias and request bodies accept either form.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
