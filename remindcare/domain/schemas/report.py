"""Pydantic schemas for the read-only reporting API."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel


class SubjectRead(BaseModel):
    id: int
    wa_id: str
    name: Optional[str] = None
    age: Optional[str] = None
    pregnancy_number: Optional[str] = None
    hpht: Optional[str] = None
    hpht_date: Optional[date] = None
    phase: str
    onboarding_step: int
    reminder_time: Optional[str] = None
    allow_reminders: Optional[bool] = None
    is_admin: bool
    is_allowed: bool
    is_blocked: bool
    delivery_date: Optional[date] = None
    delivery_time: Optional[str] = None
    delivery_place: Optional[str] = None
    delivery_attendant: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SubjectSummaryRow(SubjectRead):
    gestational_week: Optional[int] = None
    last_checkin_day: Optional[str] = None
    last_checkin_response: Optional[str] = None
    checkins_done: int = 0
    checkins_not_done: int = 0


class CheckinLogRead(BaseModel):
    id: int
    wa_id: str
    reminder_date: str
    response: Optional[str] = None
    response_count: int = 0
    response_sudah_count: int = 0
    response_belum_count: int = 0
    prompt_sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PostpartumVisitRead(BaseModel):
    id: int
    wa_id: str
    visit_code: str
    due_at: Optional[datetime] = None
    explainer_sent_at: Optional[datetime] = None
    prompt_sent_at: Optional[datetime] = None
    failures: int = 0
    response: Optional[str] = None
    responded_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SubjectDetail(BaseModel):
    subject: SubjectSummaryRow
    checkin_logs: List[CheckinLogRead]
    postpartum_visits: List[PostpartumVisitRead]


class ReportSummary(BaseModel):
    total: int
    onboarding: int
    active: int
    paused: int
    completed: int
    allowed: int
    blocked: int
    today: str
    checkins_sent_today: int
    checkins_done_today: int
    checkins_not_done_today: int
    postpartum_answered: int
    postpartum_outstanding: int
