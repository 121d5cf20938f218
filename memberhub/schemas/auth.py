from pydantic import BaseModel, Field

class RegisterIn(BaseModel):
    email: str
    username: str
    password: str = Field(min_length=6)
    first_name: str | None = None
    last_name: str | None = None

class LoginIn(BaseModel):
    email: str
    password: str

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
