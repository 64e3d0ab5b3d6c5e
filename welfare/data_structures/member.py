# Internal
import typing as T
from datetime import datetime

# External
from pydantic import Field
from pydantic.dataclasses import dataclass


@dataclass
class Member:
    id: str
    full_name: str
    email: str
    phone_number: T.Optional[str] = None
    is_active: bool = True
    registration_date: T.Optional[datetime] = None


@dataclass
class Admin:
    id: str
    full_name: str
    email: str
    role: str = "Viewer"
    permissions: T.List[str] = Field(default_factory=list)
    is_active: bool = True
