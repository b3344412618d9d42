"""Role and scope checks for reservation operations."""
from typing import Iterable

from training_bookings.exceptions import NotPermitted
from training_bookings.identity import Actor, Role
from training_bookings.models.session import TrainingSession
from training_bookings.services.directory import Directory

REMOVER_ROLES = frozenset({Role.ADMIN, Role.COMPANY})


def require_company_access(actor: Actor, session: TrainingSession) -> None:
    if actor.role == Role.ADMIN:
        return
    if actor.company_id != session.company_id:
        raise NotPermitted("You do not belong to the company running this session")


def require_privileged(actor: Actor, session: TrainingSession) -> None:
    if not actor.is_privileged:
        raise NotPermitted("Only company, manager or admin users can manage session attendance")
    require_company_access(actor, session)


def require_remover(actor: Actor, session: TrainingSession) -> None:
    if actor.role not in REMOVER_ROLES:
        raise NotPermitted("Only company or admin users can remove people from a session")
    require_company_access(actor, session)


def require_targets_in_scope(
    actor: Actor,
    session: TrainingSession,
    user_ids: Iterable[str],
    directory: Directory,
) -> None:
    """Every target must belong to the session's company, and to a managed home for managers."""
    if actor.role == Role.ADMIN:
        return
    for user_id in user_ids:
        person = directory.get(user_id)
        if person is None or person.company_id != session.company_id:
            raise NotPermitted(f"User {user_id} is not in this company's directory", details={"user_id": user_id})
        if actor.role == Role.MANAGER and directory.home_id_of(user_id) not in actor.scope_home_ids:
            raise NotPermitted(f"User {user_id} is outside your homes", details={"user_id": user_id})
