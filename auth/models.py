"""
User models for authentication and user administration.

Users are stored as one JSON list under the `archiveUsers` key. Stored
records carry the bcrypt password hash; the public User model never does.
"""

from datetime import datetime, timezone
import uuid

from pydantic import BaseModel, ConfigDict, Field

from security.policy.rbac import Role


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class User(BaseModel):
    """A user as seen by the rest of the system"""

    model_config = ConfigDict(use_enum_values=False)

    id: str = Field(default_factory=new_id)
    name: str
    email: str
    role: Role = Role.READER
    created_at: str = Field(default_factory=utc_now_iso)


class UserRecord(User):
    """Persisted user, including credentials"""

    password_hash: str

    def to_user(self) -> User:
        return User(**self.model_dump(exclude={"password_hash"}))
