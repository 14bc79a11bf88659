from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class BusinessHoursSchema(BaseModel):
    day_of_week: int = Field(ge=0, le=6)            # 0=Sun … 6=Sat
    open_hour: int = Field(default=8, ge=0, le=23)
    close_hour: int = Field(default=18, ge=0, le=24)
    is_closed: bool = False

    @model_validator(mode="after")
    def open_before_close(self):
        if not self.is_closed and self.open_hour >= self.close_hour:
            raise ValueError(f"open_hour must be before close_hour on day {self.day_of_week}")
        return self


class SpecialDateSchema(BaseModel):
    date: date
    is_closed: bool = True
    open_hour: Optional[int] = Field(default=None, ge=0, le=23)
    close_hour: Optional[int] = Field(default=None, ge=0, le=23)
    description: Optional[str] = None

    @model_validator(mode="after")
    def consistent_hours(self):
        if self.open_hour is not None and self.close_hour is not None:
            if self.open_hour >= self.close_hour:
                raise ValueError("Open hour must be before close hour")
        if not self.is_closed:
            if (self.open_hour is None) != (self.close_hour is None):
                raise ValueError("Both open and close hours must be provided or both must be null")
        return self


class AvailabilityBlockSchema(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_hour: int = Field(ge=0, le=23)
    end_hour: int = Field(ge=0, le=23)

    @model_validator(mode="after")
    def start_before_end(self):
        if self.start_hour >= self.end_hour:
            raise ValueError(f"Start hour must be before end hour, got {self.start_hour}-{self.end_hour}")
        return self


class CoachSchema(BaseModel):
    id: str
    name: str
    is_active: bool = True
    availability: list[AvailabilityBlockSchema] = []

    @field_validator("id")
    @classmethod
    def not_a_sentinel(cls, v):
        if not v.strip() or v.strip().lower() in ("any", "none"):
            raise ValueError(f"Reserved coach id: {v!r}")
        return v.strip()
