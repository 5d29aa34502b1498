from enum import Enum

from sqlmodel import Field, SQLModel


class Role(str, Enum):
    PATIENT = "PATIENT"
    PROVIDER = "PROVIDER"
    MANAGER = "MANAGER"


STAFF_ROLES = frozenset({Role.PROVIDER, Role.MANAGER})


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True)
    full_name: str | None = None
    role: Role = Field(default=Role.PATIENT, index=True)


class User(UserBase, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    hashed_password: str | None = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


class UserCreate(SQLModel):
    email: str
    password: str | None = None
    full_name: str | None = None
    role: Role = Role.PATIENT


class UserPublic(SQLModel):
    id: int
    email: str
    full_name: str | None = None
    role: Role
