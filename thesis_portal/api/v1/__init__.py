"""
API v1 routes.
"""

from fastapi import APIRouter

from thesis_portal.api.v1 import groups, notifications, registrations, seats, students, submissions, supervision

router = APIRouter()

router.include_router(registrations.router, prefix="/registrations", tags=["Registrations"])
router.include_router(submissions.router, prefix="/submissions", tags=["Submissions"])
router.include_router(students.router, prefix="/students", tags=["Students"])
router.include_router(supervision.router, prefix="/supervision", tags=["Supervision"])
router.include_router(seats.router, prefix="/faculty", tags=["Seats"])
router.include_router(groups.router, prefix="/groups", tags=["Groups"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
