from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=128)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    first_name: str = Field(min_length=1, max_length=64, alias="firstName")
    last_name: str = Field(min_length=1, max_length=64, alias="lastName")
    company: Optional[str] = Field(default=None, max_length=255)
    role: Literal["buyer", "seller"] = "buyer"


class LoginIn(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ResetRequestIn(BaseModel):
    email: str = Field(min_length=3, max_length=255)


class ResetConfirmIn(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    code: str = Field(pattern=r"^\d{6}$")
    password: str = Field(min_length=6, max_length=128)
