"""
User session context.

Authentication itself lives outside this package. Flows receive a
UserSession and refuse to touch storage once it no longer carries a user.
"""

from typing import Optional

from pydantic import BaseModel


class AuthExpiredError(Exception):
    """The session has no signed-in user. The caller must re-authenticate."""
    pass


class UserSession(BaseModel):
    """Identity of the signed-in user, or None once the session expired."""
    user_id: Optional[str] = None

    def require_user_id(self) -> str:
        if not self.user_id:
            raise AuthExpiredError("Session expired, please sign in again")
        return self.user_id
