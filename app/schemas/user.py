
from pydantic import Field

from app.schemas.common import CamelModel

class LoginIn(CamelModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=128)

class TokenOut(CamelModel):
    access_token: str
    token_type: str = "bearer"

class UserOut(CamelModel):
    id: int
    username: str
    nickname: str | None = None
    role: str
    status: int
