from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool
    is_photographer: bool

class Token(BaseModel):
    access_token: str
    token_type: str
