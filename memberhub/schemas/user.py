from memberhub.schemas.common import ApiModel

class UserOut(ApiModel):
    id: int
    email: str
    username: str
    first_name: str | None = None
    last_name: str | None = None
