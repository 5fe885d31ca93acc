from fastapi import APIRouter, Depends

from ..auth import Identity, get_current_identity
from ..schemas.user import IdentityOut

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=IdentityOut)
async def read_me(identity: Identity = Depends(get_current_identity)):
    return IdentityOut(user_id=identity.user_id, role=identity.role.value, name=identity.name)
