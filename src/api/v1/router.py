from fastapi import APIRouter

from .endpoints import health, quizzes, attempts

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(quizzes.router, prefix="/quizzes", tags=["quizzes"])
api_router.include_router(attempts.router, prefix="/attempts", tags=["attempts"])
