"""
Subject Repository Interface.
Row-level access to subjects, keyed by WhatsApp id.
"""

from typing import Dict, List, Optional, Tuple

from remindcare.domain.models.subject import Subject
from remindcare.domain.repositories.base import BaseRepository


class SubjectRepository(BaseRepository[Subject]):
    """Interface for Subject-specific operations."""

    def get_by_wa_id(self, wa_id: str) -> Optional[Subject]:
        ...

    def ensure(
        self, wa_id: str, is_admin: bool = False, is_allowed: bool = False, is_blocked: bool = False
    ) -> Tuple[Subject, bool]:
        """Get or register a subject; access flags from ``True`` seeds are raised, never lowered."""
        ...

    def list_schedulable(self) -> List[Subject]:
        """Active, non-blocked subjects the scheduler should evaluate."""
        ...

    def delete_with_logs(self, wa_id: str) -> None:
        ...

    def count_by_status(self) -> Dict[str, int]:
        ...
