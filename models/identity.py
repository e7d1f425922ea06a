from pydantic import BaseModel

from enums.actor_role import ActorRole

GUEST_CART_KEY = "cart_guest"


class IdentityDTO(BaseModel):
    """
    Who the views are built for.

    token: bearer token for the order service (None = anonymous guest)
    user_id: authenticated user id (None = guest)
    role: ActorRole of the viewer
    branch_ref: fulfilling branch of a STAFF identity
    """
    token: str | None = None
    user_id: str | None = None
    role: ActorRole = ActorRole.BUYER
    branch_ref: str | None = None

    @property
    def cart_key(self) -> str:
        if self.user_id is None:
            return GUEST_CART_KEY
        return f"cart_{self.user_id}"
