"""
Wire and HTTP payload models. Field names follow the JSON the browser client
speaks (camelCase), so they are kept as-is instead of aliased.
"""

import math
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from .body import Body
from .settings import MAX_STEP_TICKS


class BodyModel(BaseModel):
    id: int
    x: float
    y: float
    vx: float
    vy: float
    mass: float
    color: str

    @field_validator("id", mode="before")
    @classmethod
    def _integer_id(cls, value):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("must be an integer")
        return value

    @field_validator("x", "y", "vx", "vy", "mass", mode="before")
    @classmethod
    def _finite_number(cls, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("must be a valid number")
        try:
            finite = math.isfinite(value)
        except OverflowError:  # int beyond float range
            finite = False
        if not finite:
            raise ValueError("must be a finite number")
        return value

    @field_validator("mass")
    @classmethod
    def _positive_mass(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("color", mode="before")
    @classmethod
    def _string_color(cls, value):
        if not isinstance(value, str):
            raise ValueError("must be a string")
        return value

    def to_body(self) -> Body:
        return Body(
            id=self.id,
            x=self.x,
            y=self.y,
            vx=self.vx,
            vy=self.vy,
            mass=self.mass,
            color=self.color,
        )

    @classmethod
    def from_body(cls, body: Body) -> "BodyModel":
        # Outbound state is not re-validated: a diverged simulation still publishes.
        return cls.model_construct(**body.to_dict())


class StartMessage(BaseModel):
    type: Literal["start"] = "start"


class PauseMessage(BaseModel):
    type: Literal["pause"] = "pause"


class ResetMessage(BaseModel):
    type: Literal["reset"] = "reset"
    epoch: int = 0


class SetBodiesMessage(BaseModel):
    type: Literal["set_bodies"] = "set_bodies"
    bodies: List[BodyModel] = Field(min_length=2)
    epoch: int = 0


class SetTimeSpeedMessage(BaseModel):
    type: Literal["set_time_speed"] = "set_time_speed"
    timeSpeed: float = Field(gt=0, allow_inf_nan=False)


class BodiesUpdateMessage(BaseModel):
    type: Literal["bodies_update"] = "bodies_update"
    bodies: List[BodyModel]
    iterations: int = Field(ge=0)
    epoch: int = 0


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    detail: str


ControlMessage = Annotated[
    Union[StartMessage, PauseMessage, ResetMessage, SetBodiesMessage, SetTimeSpeedMessage],
    Field(discriminator="type"),
]
PeerMessage = Annotated[
    Union[BodiesUpdateMessage, ErrorMessage],
    Field(discriminator="type"),
]

control_message_adapter = TypeAdapter(ControlMessage)
peer_message_adapter = TypeAdapter(PeerMessage)


def body_models(bodies) -> List[BodyModel]:
    return [BodyModel.from_body(body) for body in bodies]


class StepRequest(BaseModel):
    bodies: List[BodyModel] = Field(min_length=2)
    timeSpeed: float = Field(1.0, gt=0, allow_inf_nan=False)
    ticks: int = Field(1, ge=1, le=MAX_STEP_TICKS)


class StepResponse(BaseModel):
    bodies: List[BodyModel]
    iterations: int


class PresetSummary(BaseModel):
    id: str
    name: str
    description: str
    category: str


class ConfigurationErrorResponse(BaseModel):
    detail: str
    body: Union[int, None] = None
    field: Union[str, None] = None
