"""Postpartum visit log: one row per subject per visit code (KF1..KF4, KN1..KN3)."""

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from remindcare.infrastructure.database import Base


class PostpartumVisitLog(Base):
    __tablename__ = "postpartum_visit_logs"
    __table_args__ = (UniqueConstraint("wa_id", "visit_code", name="uq_postpartum_wa_visit"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    wa_id = Column(String(64), nullable=False, index=True)
    visit_code = Column(String(8), nullable=False)
    due_at = Column(DateTime(timezone=True), nullable=False)

    explainer_sent_at = Column(DateTime(timezone=True), nullable=True)
    prompt_sent_at = Column(DateTime(timezone=True), nullable=True)
    prompt_id = Column(String(128), nullable=True, index=True)
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    failures = Column(Integer, nullable=False, default=0)

    response = Column(String(20), nullable=True)  # Sudah, Belum
    response_day = Column(String(10), nullable=True)  # day the counters belong to
    response_sudah_count = Column(Integer, nullable=False, default=0)
    response_belum_count = Column(Integer, nullable=False, default=0)
    responded_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<PostpartumVisitLog {self.wa_id} {self.visit_code} - {self.response}>"
