"""
Sportsblock API Routes Module

Exports all API routers for inclusion in the main FastAPI application.
"""

from sportsblock.api.routes.auth import router as auth_router
from sportsblock.api.routes.comments import router as comments_router
from sportsblock.api.routes.follows import router as follows_router
from sportsblock.api.routes.hive import router as hive_router
from sportsblock.api.routes.likes import router as likes_router
from sportsblock.api.routes.notifications import router as notifications_router
from sportsblock.api.routes.poll_votes import router as poll_votes_router
from sportsblock.api.routes.posts import router as posts_router
from sportsblock.api.routes.reactions import router as reactions_router
from sportsblock.api.routes.sportsbites import router as sportsbites_router
from sportsblock.api.routes.system import router as system_router

__all__ = [
    "auth_router",
    "comments_router",
    "follows_router",
    "hive_router",
    "likes_router",
    "notifications_router",
    "poll_votes_router",
    "posts_router",
    "reactions_router",
    "sportsbites_router",
    "system_router",
]
