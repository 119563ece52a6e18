"""
Wire Schema Base

All request/response bodies use camelCase on the wire and snake_case in
Python. The same models validate server responses and client-side reads,
so a malformed body fails at the boundary instead of leaking None
downstream.
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for every JSON body exchanged with the API."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
