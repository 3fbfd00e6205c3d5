import re
from pydantic import BaseModel, Field, field_validator
from typing import Any, Literal, Optional

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

Purpose = Literal["signup", "password-change"]


def _validate_email(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    v = v.strip()
    if not EMAIL_RE.match(v):
        raise ValueError("must be a valid email address")
    return v


class UserRegister(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=128)
    email: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)


class UserLogin(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SignupCodeRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    email: str
    purpose: Purpose = "signup"

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if not _validate_email(v):
            raise ValueError("email is required")
        return v.strip()


class SignupVerify(SignupCodeRequest):
    password: str = Field(min_length=1, max_length=128)
    code: str = Field(min_length=1, max_length=10)


class AssessmentIn(BaseModel):
    user_id: Optional[str] = None
    username: Optional[str] = None      # keys recommendations when user_id is absent
    age_group: str
    experience: str
    goals: list[str]
    time_available: str
    health_conditions: Optional[list[str]] = None
    model_config = {"extra": "ignore"}


class ProgressIn(BaseModel):
    user_id: str = Field(min_length=1)
    routine_id: Optional[str] = None
    duration: int = Field(ge=0)         # seconds
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    completed_poses: Optional[list[Any]] = None
    model_config = {"extra": "ignore"}


class MailTestRequest(BaseModel):
    to: Optional[str] = None
