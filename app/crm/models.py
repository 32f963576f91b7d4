from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(DeclarativeBase):
    pass


def _new_uuid() -> str:
    return str(uuid.uuid4())


class AdminUser(Base):
    __tablename__ = "admin_users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_uuid)
    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, default="")
    real_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class CasbinRuleMixin:
    """
    Columns of one access-control tuple, shared by every policy table.

    ptype "p": v0=subject (role or _all_apis_), v1=path template, v2=HTTP method.
    ptype "g": v0=user id, v1=role.
    v3..v5 are kept for adapter compatibility and stay empty.
    """

    @declared_attr.directive
    def __table_args__(cls):
        # Constraint names are schema-wide on Postgres.
        return (UniqueConstraint("ptype", "v0", "v1", "v2", name=f"uq_{cls.__tablename__}_ptype_v0_v1_v2"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ptype: Mapped[str] = mapped_column(String(10), nullable=False)
    v0: Mapped[str | None] = mapped_column(String(255), nullable=True)
    v1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    v2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    v3: Mapped[str | None] = mapped_column(String(255), nullable=True)
    v4: Mapped[str | None] = mapped_column(String(255), nullable=True)
    v5: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def values(self) -> list[str]:
        vals = [self.v0, self.v1, self.v2, self.v3, self.v4, self.v5]
        out = [v or "" for v in vals]
        while out and out[-1] == "":
            out.pop()
        return out

    def __str__(self) -> str:
        # Policy line form read back by the casbin adapter.
        return ", ".join([self.ptype, *self.values()])

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self}>"


class CasbinRule(CasbinRuleMixin, Base):
    __tablename__ = "casbin_rule"
