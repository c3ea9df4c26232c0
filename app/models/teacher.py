# app/models/teacher.py
# Teacher-published price list: one row per subject/level the teacher offers.
# Students and parents search it to find someone to register with.

from sqlalchemy import Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class TeacherRate(Base):
    __tablename__ = "teacher_rates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    teacher_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    subject = Column(String(100), nullable=False, index=True)   # "Mathematics"
    level = Column(String(100), nullable=False)                 # "JHS", "SHS", ...
    rate = Column(Float, nullable=False)                        # Monthly rate

    # ── Relationships ─────────────────────────────────────────────────────────
    teacher = relationship("User")

    def __repr__(self) -> str:
        return f"<TeacherRate teacher={self.teacher_id} {self.subject}/{self.level} rate={self.rate}>"
