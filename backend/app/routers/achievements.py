from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.core.security import get_current_user, require_roles
from app.models.achievement import Achievement
from app.models.user import User, UserRole
from app.routers.views import achievement_view, user_achievement_view
from app.schemas.achievement import AchievementCreate, AchievementOut, LeaderboardResponse, UserAchievementOut
from app.services.store import LearningStore, get_store

router = APIRouter(tags=["achievements"])


@router.get("/achievements", response_model=list[AchievementOut])
def list_achievements(store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
    return [achievement_view(a) for a in store.list_achievements()]


@router.get("/achievements/me", response_model=list[UserAchievementOut])
def my_achievements(store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
    return [user_achievement_view(ua, a) for ua, a in store.user_achievements(user.id)]


@router.post("/admin/achievements", response_model=AchievementOut)
def create_achievement(
    body: AchievementCreate,
    store: LearningStore = Depends(get_store),
    user: User = Depends(require_roles(UserRole.admin)),
):
    achievement = store.add_achievement(
        Achievement(
            name=body.name.strip(),
            description=body.description,
            icon=body.icon,
            xp_reward=body.xp_reward,
            condition_type=body.condition_type,
            threshold=body.threshold,
            course_level=body.course_level,
        )
    )
    store.commit()
    return achievement_view(achievement)


@router.get("/leaderboard", response_model=LeaderboardResponse)
def leaderboard(
    limit: int = Query(default=10, ge=1, le=100),
    store: LearningStore = Depends(get_store),
    user: User = Depends(get_current_user),
):
    items = []
    for rank, u in enumerate(store.leaderboard(limit), start=1):
        items.append(
            {
                "rank": rank,
                "user_id": str(u.id),
                "name": u.full_name,
                "xp": int(u.xp or 0),
                "level": int(u.level or 1),
                "streak": int(u.streak or 0),
            }
        )
    return {"items": items}
