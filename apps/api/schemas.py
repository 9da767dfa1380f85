from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List

MAX_GUARDIANS = 3


class _CamelModel(BaseModel):
    # The client speaks camelCase; accept snake_case too for scripts and tests.
    model_config = ConfigDict(populate_by_name=True)


class UserContactIn(_CamelModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name must not be empty")
        return v


class EmergencyContactIn(_CamelModel):
    id: str = Field(min_length=1)
    name: str
    email: str
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("guardian name must not be empty")
        return v

    @field_validator("email")
    @classmethod
    def email_has_at(cls, v: str) -> str:
        v = (v or "").strip()
        if "@" not in v:
            raise ValueError("guardian email must contain '@'")
        return v


class CheckInIn(_CamelModel):
    timestamp: int = Field(ge=0)
    date_string: str = Field(alias="dateString", min_length=1)
    time_string: str = Field(alias="timeString")


class SyncPayload(_CamelModel):
    """Full subject snapshot pushed by the client to POST /sync."""
    user_id: str = Field(alias="userId", min_length=1)
    language: Optional[str] = "zh"
    last_check_in: Optional[int] = Field(default=None, alias="lastCheckIn", ge=0)
    streak: int = Field(default=0, ge=0)
    is_registered: bool = Field(default=False, alias="isRegistered")
    user_contact: UserContactIn = Field(alias="userContact")
    emergency_contacts: List[EmergencyContactIn] = Field(
        default_factory=list, alias="emergencyContacts", max_length=MAX_GUARDIANS
    )
    check_in_history: List[CheckInIn] = Field(default_factory=list, alias="checkInHistory")

    @model_validator(mode="after")
    def registered_subject_has_guardian(self):
        if self.is_registered and not self.emergency_contacts:
            raise ValueError("a registered subject needs at least one guardian")
        ids = [c.id for c in self.emergency_contacts]
        if len(ids) != len(set(ids)):
            raise ValueError("guardian ids must be unique")
        return self

    @property
    def latest_check_in(self) -> Optional[CheckInIn]:
        if not self.check_in_history:
            return None
        return self.check_in_history[-1]


class SyncResponse(BaseModel):
    success: bool = True
    userId: str
