"""
The acting user.

Identity lives outside the billing ledger. Every operation is
handed an Actor explicitly instead of reading a session, which
keeps the services free of hidden dependencies.
"""

from pydantic import BaseModel, Field

from lab_billing.models.enums import UserRole


class Actor(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    role: UserRole
    # Set for lab staff; identifies the lab they work for
    lab_id: int | None = None

    model_config = {"frozen": True}

    @property
    def is_privileged(self) -> bool:
        return self.role == UserRole.ADMIN
