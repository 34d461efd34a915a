from .user import User
from .task import Task
from .goal import UserGoal
from .health import HealthEntry
from .finance import FinanceEntry
from .note import Note

# collections reported by /health
ENTITY_TABLES = {
    "users": User,
    "tasks": Task,
    "goals": UserGoal,
    "health": HealthEntry,
    "finance": FinanceEntry,
    "notes": Note,
}
