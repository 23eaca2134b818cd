from fastapi import APIRouter
from app.api.v1.endpoints import auth, users, salons, staff, bookings, salon_payments, upload

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(staff.router, prefix="/salons/{salon_id}/staff", tags=["staff"])
api_router.include_router(salons.router, prefix="/salons", tags=["salons"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
api_router.include_router(salon_payments.router, prefix="/salon-payments", tags=["salon-payments"])
api_router.include_router(upload.router, prefix="/upload", tags=["upload"])
