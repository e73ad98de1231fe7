import uuid
from enum import Enum

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from ..core.database import Base

def generate_uuid():
    return str(uuid.uuid4())


class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    SUPERVISOR = "supervisor"
    STUDENT = "student"


STAFF_ROLES = {UserRole.ADMIN.value, UserRole.TEACHER.value, UserRole.SUPERVISOR.value}


class User(Base):
    __tablename__ = "users"

    user_id = Column(String, primary_key=True, index=True, default=generate_uuid)
    firebase_uid = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=False, index=True)
    full_name = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.STUDENT.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
