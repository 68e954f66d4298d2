from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """
    Authenticated viewer resolved from a session token.

    Attached to `request.state.identity`; anonymous requests carry None.
    `email_verified` mirrors the account flag: only a verified email links
    the viewer to requests made anonymously with that address.
    """

    user_id: int
    email: str
    name: str | None = None
    email_verified: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "email_verified": self.email_verified,
        }
