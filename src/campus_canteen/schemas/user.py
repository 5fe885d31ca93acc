from pydantic import BaseModel, Field


class IdentityOut(BaseModel):
    user_id: str = Field(..., serialization_alias="userId")
    role: str
    name: str
