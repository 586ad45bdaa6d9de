from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for everything that crosses the socket.

    Attributes are snake_case in Python and camelCase on the wire; inbound
    frames may use either spelling.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
