from datetime import datetime
from typing import Optional

from smartlife.models.task import Task


class TaskLifecycle:
    """
    Keeps ``completed``, ``status`` and ``completedAt`` consistent:
    a task is completed exactly when its status is 'completed', and only
    then carries a completion time.
    """
    @staticmethod
    def sync(task: Task, now: Optional[datetime] = None) -> None:
        task.completed = task.status == "completed"
        if task.completed:
            task.completedAt = task.completedAt or now or datetime.utcnow()
        else:
            task.completedAt = None

    @staticmethod
    def set_status(task: Task, status: str, now: Optional[datetime] = None) -> None:
        task.status = status
        if status == "completed":
            task.progress = 100
        TaskLifecycle.sync(task, now)

    @staticmethod
    def set_progress(task: Task, progress: int, now: Optional[datetime] = None) -> None:
        task.progress = progress
        if progress == 100 and task.status != "completed":
            task.status = "completed"
        elif 0 < progress < 100 and task.status == "pending":
            task.status = "in-progress"
        TaskLifecycle.sync(task, now)

    @staticmethod
    def toggle(task: Task, now: Optional[datetime] = None) -> None:
        if task.completed:
            task.status = "in-progress"
        else:
            task.status = "completed"
        TaskLifecycle.sync(task, now)
