import asyncio
import sys
import os
from datetime import date, timedelta

# Add parent directory to path so we can import smartlife
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlmodel import select
from smartlife.core import security
from smartlife.core.logging import configure_logging
from smartlife.database import async_session_maker, init_db
from smartlife.models.user import User
from smartlife.models.task import Task
from smartlife.models.goal import UserGoal
from smartlife.models.health import HealthEntry
from smartlife.models.finance import FinanceEntry
from smartlife.models.note import Note
from smartlife.services.goal_calculator import GoalCalculator
from smartlife.services.task_lifecycle import TaskLifecycle

DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "demo123"


async def seed_demo_data():
    configure_logging()
    await init_db()

    async with async_session_maker() as db:
        result = await db.execute(select(User).where(User.email == DEMO_EMAIL))
        if result.scalars().first():
            print(f"{DEMO_EMAIL} already exists, nothing to do.")
            return

        user = User(
            email=DEMO_EMAIL,
            name="Demo User",
            password=security.get_password_hash(DEMO_PASSWORD),
        )
        db.add(user)
        await db.flush()

        today = date.today()

        tasks = [
            Task(userId=user.id, title="Plan the week", priority="high", category="personal", dueDate=today),
            Task(userId=user.id, title="Renew gym membership", priority="medium", category="health",
                 dueDate=today + timedelta(days=3), status="in-progress", progress=40),
            Task(userId=user.id, title="File receipts", priority="low", category="finance",
                 dueDate=today - timedelta(days=2), status="completed", progress=100),
        ]
        for task in tasks:
            TaskLifecycle.sync(task)
            db.add(task)

        goal = UserGoal(userId=user.id, title="Run a half marathon", category="health",
                        targetDate=today + timedelta(days=90))
        GoalCalculator.set_milestones(goal, [
            GoalCalculator.new_milestone("Run 5 km", completed=True),
            GoalCalculator.new_milestone("Run 10 km"),
            GoalCalculator.new_milestone("Run 15 km"),
        ])
        db.add(goal)

        for i in range(3):
            db.add(HealthEntry(userId=user.id, type="workout", title="Morning run",
                               date=today - timedelta(days=i), duration=30, calories=300))
        db.add(HealthEntry(userId=user.id, type="weight", date=today, weight=72.5))
        db.add(HealthEntry(userId=user.id, type="water", date=today, water=2.0))

        db.add(FinanceEntry(userId=user.id, type="income", title="Salary", amount=3200,
                            category="salary", paymentMethod="bank", date=today.replace(day=1)))
        db.add(FinanceEntry(userId=user.id, type="expense", title="Groceries", amount=85.4,
                            category="food", paymentMethod="card", date=today))
        db.add(FinanceEntry(userId=user.id, type="expense", title="Rent", amount=1200,
                            category="housing", paymentMethod="bank", date=today.replace(day=1)))

        db.add(Note(userId=user.id, text="Call the dentist"))
        db.add(Note(userId=user.id, text="Buy a birthday present", completed=True))

        await db.commit()
        print(f"Seeded demo account {DEMO_EMAIL} / {DEMO_PASSWORD}")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
