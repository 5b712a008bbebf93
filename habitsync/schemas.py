from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class CheckinRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    habit_id: int = Field(alias="habitId", gt=0)
    status: Literal["done", "skip"]


class UndoRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    habit_id: int = Field(alias="habitId", gt=0)


class HabitCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1, max_length=200)
    kind: str = Field(default="boolean", alias="type")
    counter_target: Optional[int] = Field(default=None, alias="counterTarget")
    counter_step: Optional[int] = Field(default=None, alias="counterStep")
    timer_duration: Optional[int] = Field(default=None, alias="timerDuration")


class HabitUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    active: Optional[bool] = None
    sort_order: Optional[int] = None
    counter_target: Optional[int] = Field(default=None, alias="counterTarget")
    counter_step: Optional[int] = Field(default=None, alias="counterStep")
    timer_duration: Optional[int] = Field(default=None, alias="timerDuration")


class ReorderItem(BaseModel):
    id: int
    sort_order: int


class ReorderRequest(BaseModel):
    order: List[ReorderItem] = Field(min_length=1)


class SettingsRequest(BaseModel):
    timezone: Optional[str] = None
