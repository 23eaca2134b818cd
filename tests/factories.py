"""
Builders shared by the test modules
"""
from datetime import date, time, timedelta

from app.core.access import Actor, USER
from app.core.security import build_token_claims, create_access_token
from app.models.models import Slot, User, UserRole

TOMORROW = date.today() + timedelta(days=1)


def make_user(db, phone, full_name, roles=(USER,)):
    user = User(phone=phone, full_name=full_name)
    db.add(user)
    db.flush()
    for role in roles:
        db.add(UserRole(user_id=user.id, role=role))
    db.commit()
    db.refresh(user)
    return user


def make_slot(db, salon, slot_date=TOMORROW, start=time(10, 0), end=time(10, 30), capacity=2):
    slot = Slot(
        salon_id=salon.id,
        date=slot_date,
        start_time=start,
        end_time=end,
        capacity=capacity,
        booked_count=0,
    )
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


def actor_for(db, user):
    """Actor carrying the user's current roles and memberships"""
    return Actor.from_claims(build_token_claims(db, user))


def headers_for(db, user):
    token = create_access_token(build_token_claims(db, user))
    return {"Authorization": f"Bearer {token}"}
