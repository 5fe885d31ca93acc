import enum
import uuid
from sqlalchemy import Column, String, DateTime, func, Enum
from ..db.base import Base, utcnow


class RoleEnum(str, enum.Enum):
    student = "student"
    staff = "staff"
    admin = "admin"

    @property
    def is_privileged(self) -> bool:
        """Staff and admins run the kitchen boards and may move any order along."""
        return self in (RoleEnum.staff, RoleEnum.admin)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(128), nullable=False)
    role = Column(Enum(RoleEnum, name="user_role"), nullable=False, default=RoleEnum.student)
    # role-specific identifier: student number, staff id or admin email
    student_number = Column(String(64), nullable=True, unique=True)
    staff_id = Column(String(64), nullable=True, unique=True)
    email = Column(String(255), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    @property
    def role_identifier(self) -> str | None:
        if self.role == RoleEnum.student:
            return self.student_number
        if self.role == RoleEnum.staff:
            return self.staff_id
        return self.email
