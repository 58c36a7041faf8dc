"""
Database Seed Script

Seeds the database with:
- Demo donor, receiver, volunteer and admin accounts
- Sample donations across the lifecycle (pending, accepted, completed)
"""

import asyncio
from datetime import timedelta

from dotenv import load_dotenv

# Load environment variables before the engine is created
load_dotenv()

from passlib.context import CryptContext  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from foodbridge.shared.database import close_database, get_session_context, init_database  # noqa: E402
from foodbridge.shared.models import (  # noqa: E402
    Donation,
    DonationStatus,
    FoodType,
    Freshness,
    QuantityUnit,
    User,
    UserRole,
    utcnow,
)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# ==============================================
# SAMPLE DATA
# ==============================================

SAMPLE_USERS = [
    {
        "email": "donor@foodbridge.dev",
        "name": "Spice Route Kitchen",
        "password": "donor123",
        "role": UserRole.DONOR,
        "address": "12 MG Road, Bengaluru",
        "lat": 12.9756,
        "lng": 77.6050,
        "organization_name": "Spice Route Kitchen",
        "organization_type": "restaurant",
    },
    {
        "email": "receiver@foodbridge.dev",
        "name": "Hope Shelter",
        "password": "receiver123",
        "role": UserRole.RECEIVER,
        "address": "44 Residency Road, Bengaluru",
        "lat": 12.9680,
        "lng": 77.6000,
        "organization_name": "Hope Shelter",
        "organization_type": "ngo",
    },
    {
        "email": "volunteer@foodbridge.dev",
        "name": "Asha Rao",
        "password": "volunteer123",
        "role": UserRole.VOLUNTEER,
        "address": "Indiranagar, Bengaluru",
        "lat": 12.9784,
        "lng": 77.6408,
    },
    {
        "email": "admin@foodbridge.dev",
        "name": "FoodBridge Admin",
        "password": "admin123",
        "role": UserRole.ADMIN,
    },
]

SAMPLE_DONATIONS = [
    # (food, type, quantity, unit, freshness, health, hours until expiry, emergency, status)
    ("Vegetable Biryani", FoodType.VEGETARIAN, 40, QuantityUnit.SERVINGS, Freshness.FRESHLY_COOKED, 9.0, 6, False, DonationStatus.PENDING),
    ("Chicken Curry", FoodType.NON_VEGETARIAN, 25, QuantityUnit.SERVINGS, Freshness.STORED_4HRS, 8.0, 3, True, DonationStatus.PENDING),
    ("Fruit Salad", FoodType.VEGAN, 5, QuantityUnit.KG, Freshness.FRESHLY_COOKED, 10.0, 10, False, DonationStatus.PENDING),
    ("Dal and Rice", FoodType.VEGETARIAN, 60, QuantityUnit.PLATES, Freshness.STORED_4HRS, 8.5, 5, False, DonationStatus.ACCEPTED),
    ("Gulab Jamun", FoodType.DESSERT, 100, QuantityUnit.PIECES, Freshness.STORED_8HRS, 7.0, 12, False, DonationStatus.COMPLETED),
]

# ==============================================
# SEED FUNCTIONS
# ==============================================

async def seed_database():
    """Main seeding function"""
    print("=" * 60)
    print("  FoodBridge Database Seeding Script")
    print("=" * 60)
    print()

    await init_database()

    try:
        async with get_session_context() as session:
            print("[STEP] Seeding users...")
            users = await seed_users(session)
            print(f"[✓] {len(users)} users ready")

            print("\n[STEP] Seeding donations...")
            created = await seed_donations(session, users)
            print(f"[✓] Created {created} donations")

        print("\n" + "=" * 60)
        print("  DATABASE SEEDED SUCCESSFULLY")
        print("=" * 60)
        print("\nDemo Credentials:")
        for user_data in SAMPLE_USERS:
            print(f"  {user_data['role'].value:<10} {user_data['email']} / {user_data['password']}")
        print()
    except Exception as e:
        print(f"\n[✗] Error: {str(e)}")
        raise
    finally:
        await close_database()


async def seed_users(session: AsyncSession) -> dict:
    """Create demo users, reusing any that already exist. Returns users by role."""
    users = {}

    for user_data in SAMPLE_USERS:
        result = await session.execute(select(User).where(User.email == user_data["email"]))
        user = result.scalar_one_or_none()

        if user is None:
            fields = {k: v for k, v in user_data.items() if k != "password"}
            user = User(
                **fields,
                password_hash=pwd_context.hash(user_data["password"]),
                email_verified=True,
                points=0,
                is_active=True,
            )
            session.add(user)
            await session.flush()

        users[user.role] = user

    return users


async def seed_donations(session: AsyncSession, users: dict) -> int:
    """Seed sample donations from the demo donor, skipping if they already exist."""
    donor = users[UserRole.DONOR]
    receiver = users[UserRole.RECEIVER]
    volunteer = users[UserRole.VOLUNTEER]

    result = await session.execute(select(Donation.id).where(Donation.donor_id == donor.id).limit(1))
    if result.first() is not None:
        print("[!] Donations already seeded, skipping")
        return 0

    now = utcnow()

    for food_name, food_type, quantity, unit, freshness, health, hours, emergency, status in SAMPLE_DONATIONS:
        donation = Donation(
            donor_id=donor.id,
            food_name=food_name,
            food_type=food_type,
            quantity=quantity,
            unit=unit,
            description=f"Surplus {food_name.lower()} from today's service",
            images=[],
            address=donor.address,
            lat=donor.lat,
            lng=donor.lng,
            expiry_time=now + timedelta(hours=hours),
            slot_start=now,
            slot_end=now + timedelta(hours=min(hours, 4)),
            freshness=freshness,
            food_health_score=health,
            is_emergency=emergency,
            status=status,
        )

        if status in (DonationStatus.ACCEPTED, DonationStatus.COMPLETED):
            donation.receiver_id = receiver.id
            donation.accepted_at = now - timedelta(hours=2)
        if status == DonationStatus.COMPLETED:
            donation.volunteer_id = volunteer.id
            donation.picked_at = now - timedelta(hours=1)
            donation.completed_at = now

        session.add(donation)

    return len(SAMPLE_DONATIONS)

# ==============================================
# MAIN
# ==============================================

if __name__ == "__main__":
    asyncio.run(seed_database())
