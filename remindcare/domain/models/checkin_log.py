"""Daily check-in log: one row per subject per calendar day."""

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from remindcare.infrastructure.database import Base


class CheckinLog(Base):
    __tablename__ = "checkin_logs"
    __table_args__ = (UniqueConstraint("wa_id", "reminder_date", name="uq_checkin_wa_day"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    wa_id = Column(String(64), nullable=False, index=True)
    reminder_date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    response = Column(String(20), nullable=True)  # Sudah, Belum
    response_count = Column(Integer, nullable=False, default=0)
    response_sudah_count = Column(Integer, nullable=False, default=0)
    response_belum_count = Column(Integer, nullable=False, default=0)
    prompt_sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<CheckinLog {self.wa_id} {self.reminder_date} - {self.response}>"
