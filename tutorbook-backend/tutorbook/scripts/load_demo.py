"""
Demo Data Loader

Seeds the catalog, a tutor roster with weekly availability and a few group
sessions so the booking flow can be demonstrated end to end.
Usage: python -m tutorbook.scripts.load_demo --tutors 12 --groups 4
"""
import asyncio
import argparse
import random
import uuid
from datetime import date, time, timedelta
from decimal import Decimal
from faker import Faker
from sqlalchemy import text

from tutorbook.database import AsyncSessionLocal
from tutorbook.models.availability import TutorAvailability
from tutorbook.models.tutor import Tutor
from tutorbook.models.tutoring_service import TutoringService
from tutorbook.schemas import BookingSubmission, CurrentUser
from tutorbook.services.booking_service import get_booking_service

fake = Faker()

# (name, online, in person, hourly rate)
DEMO_SERVICES = [
    ("Mathematics", True, True, "45.00"),
    ("Physics", True, True, "50.00"),
    ("Chemistry", True, False, "50.00"),
    ("English Literature", True, True, "40.00"),
    ("Computer Science", True, False, "55.00"),
    ("SAT Prep", True, False, "60.00"),
]

# Weekday (0=Sunday) -> (start hour, end hour) templates tutors pick from
AVAILABILITY_TEMPLATES = [
    {1: (9, 13), 3: (9, 13), 5: (9, 13)},
    {2: (14, 19), 4: (14, 19)},
    {1: (16, 20), 2: (16, 20), 3: (16, 20), 4: (16, 20)},
    {0: (10, 16), 6: (10, 16)},
]


async def clear_demo_data():
    """Clear all existing data"""
    async with AsyncSessionLocal() as session:
        tables = [
            "group_session_tutors",
            "booking_tutors",
            "booking_subjects",
            "bookings",
            "group_session_participants",
            "group_sessions",
            "tutor_availability",
            "tutors",
            "tutoring_services",
        ]
        for table in tables:
            await session.execute(text(f"DELETE FROM {table}"))
        await session.commit()
    print("✓ Cleared existing data")


async def load_catalog():
    async with AsyncSessionLocal() as session:
        services = []
        for name, online, in_person, rate in DEMO_SERVICES:
            service = TutoringService(
                name=name,
                description=fake.sentence(nb_words=10),
                online_available=online,
                in_person_available=in_person,
                hourly_rate=Decimal(rate),
                is_active=True,
            )
            services.append(service)
            session.add(service)
        await session.commit()
    print(f"  Created {len(services)} tutoring services")
    return services


async def load_tutors(num_tutors: int):
    async with AsyncSessionLocal() as session:
        tutors = []
        for _ in range(num_tutors):
            template = random.choice(AVAILABILITY_TEMPLATES)
            tutor = Tutor(
                id=uuid.uuid4(),
                name=fake.name(),
                email=fake.unique.email(),
                subjects=random.sample([s[0] for s in DEMO_SERVICES], k=2),
                status="approved",
                availability=[
                    TutorAvailability(day_of_week=day, start_time=time(start), end_time=time(end))
                    for day, (start, end) in template.items()
                ],
            )
            tutors.append(tutor)
            session.add(tutor)
        await session.commit()
    print(f"  Created {len(tutors)} tutors with weekly availability")
    return tutors


async def load_groups(services, num_groups: int, students_per_group: int):
    """Form groups through the normal booking path so counts and statuses are real."""
    booking_service = get_booking_service()
    online = [s for s in services if s.online_available]
    formed = 0
    for i in range(num_groups):
        service = online[i % len(online)]
        session_date = date.today() + timedelta(days=7 + i)
        for _ in range(students_per_group):
            student = CurrentUser(id=uuid.uuid4(), role="student")
            await booking_service.submit_booking(
                student,
                BookingSubmission(
                    service_id=service.id,
                    class_type="group",
                    preferred_date=session_date,
                    notes=fake.sentence(nb_words=8),
                ),
            )
        formed += 1
    print(f"  Formed {formed} group sessions with {students_per_group} students each")


async def load_demo(num_tutors: int, num_groups: int, students_per_group: int, seed: int):
    random.seed(seed)
    Faker.seed(seed)

    print("\nLoading demo data...")
    await clear_demo_data()
    services = await load_catalog()
    await load_tutors(num_tutors)
    await load_groups(services, num_groups, students_per_group)
    print("\n✅ Demo data loaded successfully!")


def main():
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Load demo booking data")
    parser.add_argument("--tutors", type=int, default=12, help="Number of tutors")
    parser.add_argument("--groups", type=int, default=4, help="Number of group sessions")
    parser.add_argument(
        "--students-per-group",
        type=int,
        default=3,
        help="Students joining each group (3 reaches quorum with default settings)"
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed")

    args = parser.parse_args()
    asyncio.run(load_demo(args.tutors, args.groups, args.students_per_group, args.seed))


if __name__ == "__main__":
    main()
