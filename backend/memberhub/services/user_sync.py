"""Mirror Clerk users locally when Clerk reports them."""
from typing import Any

from sqlalchemy.orm import Session

from memberhub.core.logging import get_logger
from memberhub.db.models.user import User
from memberhub.services.circle import CircleAdminClient, CircleAPIError, CircleConfigError
from memberhub.services.identity import display_name
from memberhub.services.provisioning import upsert_user

logger = get_logger(__name__)


class MissingEmailError(ValueError):
    pass


def handle_user_created(db: Session, circle: CircleAdminClient, data: dict[str, Any]) -> User:
    """
    Upsert the user from a Clerk ``user.created`` payload and invite them to Circle.

    Database errors propagate. A Circle failure is logged and left for manual
    follow-up; the member id is cached when Circle returns one.
    """
    user_id = data["id"]
    addresses = data.get("email_addresses") or []
    email = addresses[0].get("email_address") if addresses else None
    if not email:
        raise MissingEmailError(f"User {user_id} has no email address")

    name = display_name(data.get("first_name"), data.get("last_name"), data.get("username"), email)
    user = upsert_user(db, user_id, email, name)

    try:
        member_id = circle.create_member(email, name, skip_invitation=False)
    except (CircleAPIError, CircleConfigError) as e:
        logger.error(f"Circle invitation failed for user {user_id} ({email}), manual follow-up required: {e}")
        return user

    if member_id:
        user.circle_member_id = member_id
        db.commit()
        logger.info(f"Invited user {user_id} to Circle as member {member_id}")
    return user
