import math
from datetime import datetime
from typing import List, Optional

from uuid6 import uuid7

from smartlife.models.goal import UserGoal


class GoalCalculator:
    """
    State transitions for goals.

    Progress is always kept within 0-100. A goal at 100% is completed, and a
    completed goal that drops below 100% goes back to 'in-progress'. When a
    goal has milestones its progress is the share of completed milestones.
    """
    @staticmethod
    def clamp(progress: float) -> int:
        if not math.isfinite(progress):
            raise ValueError(f"Progress must be a finite number, got {progress}")
        return max(0, min(100, int(round(progress))))

    @staticmethod
    def new_milestone(
        text: str,
        completed: bool = False,
        now: Optional[datetime] = None,
        milestone_id: Optional[str] = None,
    ) -> dict:
        now = now or datetime.utcnow()
        return {
            "id": milestone_id or str(uuid7()),
            "text": text,
            "completed": completed,
            "completedAt": now.isoformat() if completed else None,
            "createdAt": now.isoformat(),
        }

    @staticmethod
    def milestone_progress(milestones: List[dict]) -> Optional[int]:
        if not milestones:
            return None
        done = sum(1 for m in milestones if m.get("completed"))
        return GoalCalculator.clamp(done / len(milestones) * 100)

    @staticmethod
    def set_progress(goal: UserGoal, progress: float, now: Optional[datetime] = None) -> None:
        now = now or datetime.utcnow()
        goal.progress = GoalCalculator.clamp(progress)
        if goal.progress == 100 and goal.status != "completed":
            goal.status = "completed"
            goal.completedAt = now
        elif goal.progress < 100 and goal.status == "completed":
            goal.status = "in-progress"
            goal.completedAt = None

    @staticmethod
    def set_status(goal: UserGoal, status: str, now: Optional[datetime] = None) -> None:
        now = now or datetime.utcnow()
        goal.status = status
        if status == "completed":
            goal.progress = 100
            goal.completedAt = goal.completedAt or now
        else:
            goal.completedAt = None

    @staticmethod
    def set_milestones(goal: UserGoal, milestones: List[dict], now: Optional[datetime] = None) -> None:
        """Replace the milestone list and recompute progress from it."""
        goal.milestones = list(milestones)
        progress = GoalCalculator.milestone_progress(goal.milestones)
        if progress is not None:
            GoalCalculator.set_progress(goal, progress, now)

    @staticmethod
    def merge_milestones(current: List[dict], incoming: List[dict], now: Optional[datetime] = None) -> List[dict]:
        """
        Build the milestone list for an edited goal.

        An incoming milestone whose id matches a current one keeps its
        ``createdAt``, and its ``completedAt`` unless the completed flag
        changed. New milestones may carry their own timestamps (imports).
        """
        now = now or datetime.utcnow()
        by_id = {m.get("id"): m for m in current}
        merged = []
        for m in incoming:
            completed = m.get("completed", False)
            previous = by_id.get(m["id"]) if m.get("id") else None
            if previous is None:
                milestone = GoalCalculator.new_milestone(m["text"], completed, now, m.get("id"))
                if m.get("createdAt"):
                    milestone["createdAt"] = m["createdAt"].isoformat()
                if completed and m.get("completedAt"):
                    milestone["completedAt"] = m["completedAt"].isoformat()
            else:
                if previous.get("completed", False) == completed:
                    completed_at = previous.get("completedAt")
                else:
                    completed_at = now.isoformat() if completed else None
                milestone = {**previous, "text": m["text"], "completed": completed, "completedAt": completed_at}
            merged.append(milestone)
        return merged

    @staticmethod
    def toggle_milestone(goal: UserGoal, milestone_id: str, now: Optional[datetime] = None) -> Optional[dict]:
        """Flip one milestone. Returns the updated milestone, or None if unknown."""
        now = now or datetime.utcnow()
        toggled = None
        milestones = []
        for m in goal.milestones:
            if m.get("id") == milestone_id:
                completed = not m.get("completed", False)
                m = {**m, "completed": completed, "completedAt": now.isoformat() if completed else None}
                toggled = m
            milestones.append(m)
        if toggled is not None:
            GoalCalculator.set_milestones(goal, milestones, now)
        return toggled

    @staticmethod
    def archive(goal: UserGoal, now: Optional[datetime] = None) -> None:
        goal.archived = True
        goal.archivedAt = now or datetime.utcnow()

    @staticmethod
    def restore(goal: UserGoal) -> None:
        goal.archived = False
        goal.archivedAt = None
