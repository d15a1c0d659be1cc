from datetime import datetime
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class RegisterRequest(BaseModel):
    email: str | None = None
    name: str | None = None
    password: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    model_config = {"from_attributes": True, **_CAMEL}

    id: str
    email: str
    name: str
    created_at: datetime
    last_login: datetime | None = None


class AuthResponse(BaseModel):
    message: str
    user: UserResponse
