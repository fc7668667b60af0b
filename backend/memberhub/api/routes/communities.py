"""Community catalogue and member space view."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from memberhub.api.deps import get_circle_auth, get_circle_member, get_current_identity
from memberhub.core.logging import get_logger
from memberhub.db.session import get_db
from memberhub.schemas.communities import CommunityOut, SpaceDataOut
from memberhub.services.circle import (
    CircleAPIError,
    CircleConfigError,
    CircleHeadlessAuthClient,
    CircleMemberClient,
)
from memberhub.services.community_service import list_communities
from memberhub.services.identity import UserProfile

router = APIRouter(prefix="/api", tags=["communities"])
logger = get_logger(__name__)

POSTS_PER_PAGE = 10


@router.get("/communities", response_model=List[CommunityOut])
def get_communities(db: Session = Depends(get_db)) -> List[CommunityOut]:
    return [CommunityOut.model_validate(c) for c in list_communities(db)]


@router.get("/circle-space-data")
def get_circle_space_data(
    space_id: Optional[str] = Query(default=None, alias="spaceId"),
    identity: UserProfile = Depends(get_current_identity),
    circle_auth: CircleHeadlessAuthClient = Depends(get_circle_auth),
    circle_member: CircleMemberClient = Depends(get_circle_member),
):
    """Space details and recent posts, fetched with a fresh member token."""
    if not space_id:
        return JSONResponse(status_code=400, content={"error": "spaceId parameter is required"})
    try:
        space = int(space_id)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid spaceId parameter"})

    try:
        access_token = circle_auth.create_member_token(identity.email)
    except (CircleAPIError, CircleConfigError) as e:
        logger.error(f"Error getting Circle member token for {identity.email}: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Could not authenticate with the community platform"},
        )

    try:
        space_details = circle_member.get_space(space, access_token)
        posts = circle_member.list_posts(space, access_token, per_page=POSTS_PER_PAGE)
    except CircleAPIError as e:
        logger.error(f"Error fetching Circle space data for space {space}: {e}")
        if e.status_code == 403:
            return JSONResponse(
                status_code=403,
                content={"error": "Access Denied: You may not have access to this community space"},
            )
        return JSONResponse(status_code=500, content={"error": "Failed to load space data"})
    except CircleConfigError as e:
        logger.error(str(e))
        return JSONResponse(status_code=500, content={"error": "Failed to load space data"})

    return SpaceDataOut(access_token=access_token, space_details=space_details, posts=posts)
