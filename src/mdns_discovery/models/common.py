from enum import Enum

from pydantic import BaseModel


class BasePydanticModel(BaseModel):
    model_config = {
        "extra": "forbid",
        "populate_by_name": True,
        "use_enum_values": True,
    }

class EventType(str, Enum):
    ADD = "add"
    REMOVE = "remove"
