"""
Policy rule model: one row per Casbin rule.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from policy_adapter.models.database import Base


POLICY_TABLE = "policy"


class PolicyRule(Base):
    """Casbin policy rule stored as a policy type plus four positional values."""

    __tablename__ = POLICY_TABLE

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ptype: Mapped[str] = mapped_column(String(255), index=True, default="")
    # Absent values are stored as "" rather than NULL
    v1: Mapped[str] = mapped_column(String(255), default="")
    v2: Mapped[str] = mapped_column(String(255), default="")
    v3: Mapped[str] = mapped_column(String(255), default="")
    v4: Mapped[str] = mapped_column(String(255), default="")

    def __repr__(self) -> str:
        return (
            f"<PolicyRule(id={self.id}, ptype={self.ptype}, "
            f"v1={self.v1}, v2={self.v2}, v3={self.v3}, v4={self.v4})>"
        )
