"""Subject domain model: one row per WhatsApp identity, maps to the 'subjects' table."""

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String

from remindcare.core.clock import localize
from remindcare.domain.workflow import (
    DailyCheckinState,
    DeliveryDataState,
    DeliveryStage,
    DeliveryValidationState,
    LaborEducationState,
    PostpartumState,
    RetryState,
    SubjectPhase,
)
from remindcare.infrastructure.database import Base


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wa_id = Column(String(64), unique=True, nullable=False, index=True)

    phase = Column(String(20), nullable=False, default=SubjectPhase.ONBOARDING.value, index=True)
    onboarding_step = Column(Integer, nullable=False, default=1)

    # Onboarding profile
    name = Column(String(200), nullable=True)
    age = Column(String(50), nullable=True)
    pregnancy_number = Column(String(50), nullable=True)
    hpht = Column(String(50), nullable=True)  # as typed by the subject
    hpht_date = Column(Date, nullable=True)
    routine_meds = Column(Boolean, nullable=True)
    tea = Column(Boolean, nullable=True)
    reminder_person = Column(String(200), nullable=True)
    allow_reminders = Column(Boolean, nullable=True)
    reminder_time = Column(String(5), nullable=True)  # HH:MM

    # Access control
    is_admin = Column(Boolean, nullable=False, default=False)
    is_allowed = Column(Boolean, nullable=False, default=False)
    is_blocked = Column(Boolean, nullable=False, default=False)

    # Daily check-in
    checkin_last_sent_day = Column(String(10), nullable=True)
    checkin_intro_day = Column(String(10), nullable=True)
    checkin_poll_id = Column(String(128), nullable=True, index=True)
    checkin_failures = Column(Integer, nullable=False, default=0)
    checkin_last_attempt_at = Column(DateTime(timezone=True), nullable=True)

    # Labor-phase education
    labor_last_sent_day = Column(String(10), nullable=True)

    # Delivery validation
    dv_stage = Column(String(20), nullable=True)
    dv_intro_day = Column(String(10), nullable=True)
    dv_week39_day = Column(String(10), nullable=True)
    dv_hpl_day = Column(String(10), nullable=True)
    dv_hpl3_day = Column(String(10), nullable=True)
    dv_answer = Column(Boolean, nullable=True)
    dv_answered_at = Column(DateTime(timezone=True), nullable=True)
    dv_poll_id = Column(String(128), nullable=True, index=True)
    dv_failures = Column(Integer, nullable=False, default=0)
    dv_last_attempt_at = Column(DateTime(timezone=True), nullable=True)

    # Delivery data collection
    delivery_step = Column(Integer, nullable=False, default=0)
    delivery_date = Column(Date, nullable=True)
    delivery_time = Column(String(5), nullable=True)
    delivery_place = Column(String(200), nullable=True)
    delivery_attendant = Column(String(200), nullable=True)
    delivery_completed_at = Column(DateTime(timezone=True), nullable=True)

    # Postpartum
    pp_education_sent_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    @property
    def phase_enum(self) -> SubjectPhase:
        return SubjectPhase(self.phase)

    @property
    def daily_checkin(self) -> DailyCheckinState:
        return DailyCheckinState(
            last_sent_day=self.checkin_last_sent_day,
            intro_day=self.checkin_intro_day,
            poll_id=self.checkin_poll_id,
            retry=RetryState(self.checkin_failures or 0, localize(self.checkin_last_attempt_at)),
        )

    @property
    def labor_education(self) -> LaborEducationState:
        return LaborEducationState(last_sent_day=self.labor_last_sent_day)

    @property
    def delivery_validation(self) -> DeliveryValidationState:
        return DeliveryValidationState(
            stage=DeliveryStage(self.dv_stage) if self.dv_stage else None,
            intro_day=self.dv_intro_day,
            week39_day=self.dv_week39_day,
            hpl_day=self.dv_hpl_day,
            hpl3_day=self.dv_hpl3_day,
            answer=self.dv_answer,
            answered_at=localize(self.dv_answered_at),
            poll_id=self.dv_poll_id,
            retry=RetryState(self.dv_failures or 0, localize(self.dv_last_attempt_at)),
        )

    @property
    def delivery_data(self) -> DeliveryDataState:
        return DeliveryDataState(
            step=self.delivery_step or 0,
            delivery_date=self.delivery_date,
            delivery_time=self.delivery_time,
            place=self.delivery_place,
            attendant=self.delivery_attendant,
            completed_at=localize(self.delivery_completed_at),
        )

    @property
    def postpartum(self) -> PostpartumState:
        return PostpartumState(education_sent_at=localize(self.pp_education_sent_at))

    def __repr__(self):
        return f"<Subject {self.wa_id} - {self.phase}>"
