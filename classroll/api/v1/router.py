"""Main API router aggregating all module routers."""

from fastapi import APIRouter

from classroll.api.v1.endpoints import attendance, classes, students

api_router = APIRouter()

# Classes and their rosters
api_router.include_router(
    classes.router,
    prefix="/classes",
    tags=["Classes"],
)

# Attendance (class-scoped)
api_router.include_router(
    attendance.router,
    prefix="/classes",
    tags=["Attendance"],
)

# Students
api_router.include_router(
    students.router,
    prefix="/students",
    tags=["Students"],
)
