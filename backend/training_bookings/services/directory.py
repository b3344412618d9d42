"""Directory lookups: who an actor can see, and what to call them."""
import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from training_bookings.identity import Actor, Role
from training_bookings.models.person import Person

logger = logging.getLogger(__name__)


class Directory:
    """Read-only view over the ``people`` table."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[Person]:
        return self.db.get(Person, user_id)

    def visible_user_ids(self, actor: Actor, company_id: Optional[str] = None) -> list[str]:
        """Company-wide for ADMIN/COMPANY, the manager's homes for MANAGER, self for STAFF."""
        company_id = company_id or actor.company_id
        if actor.role == Role.STAFF:
            return [actor.user_id]
        query = self.db.query(Person.user_id).filter(Person.company_id == company_id)
        if actor.role == Role.MANAGER:
            if not actor.scope_home_ids:
                return []
            query = query.filter(Person.home_id.in_(actor.scope_home_ids))
        return [row.user_id for row in query.order_by(Person.user_id).all()]

    def display_names(self, user_ids: Iterable[str]) -> dict[str, str]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        rows = self.db.query(Person.user_id, Person.display_name).filter(Person.user_id.in_(ids)).all()
        return {row.user_id: row.display_name for row in rows}

    def home_id_of(self, user_id: str) -> Optional[str]:
        person = self.get(user_id)
        return person.home_id if person else None
