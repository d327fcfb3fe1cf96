"""API v1 router aggregation."""

from fastapi import APIRouter

from tutorlink.api.v1 import (
    applications,
    contacts,
    payments,
    post_requirements,
    resources,
    teachers,
    wallet,
)

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(wallet.router)
api_router.include_router(contacts.router)
api_router.include_router(applications.router)
api_router.include_router(post_requirements.router)
api_router.include_router(teachers.router)
api_router.include_router(payments.router)
api_router.include_router(resources.router)
