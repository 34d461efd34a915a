"""
Tests for task and goal state transitions
"""
from datetime import datetime, timedelta

import pytest
from uuid6 import uuid7

from smartlife.models.goal import UserGoal
from smartlife.models.task import Task
from smartlife.services.goal_calculator import GoalCalculator
from smartlife.services.task_lifecycle import TaskLifecycle

NOW = datetime(2024, 3, 15, 12, 0)


def make_task(**fields) -> Task:
    return Task(title="Write report", userId=uuid7(), **fields)


def make_goal(**fields) -> UserGoal:
    return UserGoal(title="Learn Spanish", userId=uuid7(), **fields)


# --- Tasks ---

def test_task_completion_sets_timestamp():
    task = make_task()

    TaskLifecycle.set_status(task, "completed", NOW)

    assert task.completed is True
    assert task.completedAt == NOW
    assert task.progress == 100


def test_task_reopen_clears_timestamp():
    task = make_task()
    TaskLifecycle.set_status(task, "completed", NOW)

    TaskLifecycle.set_status(task, "pending", NOW)

    assert task.completed is False
    assert task.completedAt is None


def test_task_progress_moves_pending_to_in_progress():
    task = make_task()

    TaskLifecycle.set_progress(task, 40, NOW)

    assert task.status == "in-progress"
    assert task.completed is False


def test_task_full_progress_completes():
    task = make_task(status="in-progress")

    TaskLifecycle.set_progress(task, 100, NOW)

    assert task.status == "completed"
    assert task.completedAt == NOW


def test_task_toggle_flips_completion():
    task = make_task()

    TaskLifecycle.toggle(task, NOW)
    assert task.status == "completed"
    assert task.completed is True

    TaskLifecycle.toggle(task, NOW)
    assert task.status == "in-progress"
    assert task.completedAt is None


# --- Goals ---

def test_goal_progress_is_clamped():
    goal = make_goal()

    GoalCalculator.set_progress(goal, 140, NOW)
    assert goal.progress == 100
    assert goal.status == "completed"
    assert goal.completedAt == NOW

    GoalCalculator.set_progress(goal, -5, NOW)
    assert goal.progress == 0
    assert goal.status == "in-progress"
    assert goal.completedAt is None


def test_goal_completed_status_forces_full_progress():
    goal = make_goal(progress=30)

    GoalCalculator.set_status(goal, "completed", NOW)

    assert goal.progress == 100
    assert goal.completedAt == NOW

    GoalCalculator.set_status(goal, "on-hold", NOW)
    assert goal.completedAt is None


def test_milestones_drive_progress():
    goal = make_goal()
    GoalCalculator.set_milestones(goal, [
        GoalCalculator.new_milestone("Basics", completed=True, now=NOW),
        GoalCalculator.new_milestone("Grammar", now=NOW),
        GoalCalculator.new_milestone("Conversation", now=NOW),
    ], NOW)

    assert goal.progress == 33
    assert goal.milestones[0]["completedAt"] == NOW.isoformat()
    assert goal.milestones[1]["completedAt"] is None


def test_toggle_last_milestone_completes_goal():
    first = GoalCalculator.new_milestone("One", completed=True, now=NOW)
    second = GoalCalculator.new_milestone("Two", now=NOW)
    goal = make_goal()
    GoalCalculator.set_milestones(goal, [first, second], NOW)

    toggled = GoalCalculator.toggle_milestone(goal, second["id"], NOW)

    assert toggled["completed"] is True
    assert goal.progress == 100
    assert goal.status == "completed"

    GoalCalculator.toggle_milestone(goal, second["id"], NOW)
    assert goal.progress == 50
    assert goal.status == "in-progress"


def test_toggle_unknown_milestone():
    goal = make_goal()
    GoalCalculator.set_milestones(goal, [GoalCalculator.new_milestone("One", now=NOW)], NOW)

    assert GoalCalculator.toggle_milestone(goal, "missing", NOW) is None
    assert goal.progress == 0


def test_new_milestone_keeps_given_id():
    milestone = GoalCalculator.new_milestone("Keep", milestone_id="m-1", now=NOW)

    assert milestone["id"] == "m-1"


def test_archive_and_restore():
    goal = make_goal()

    GoalCalculator.archive(goal, NOW)
    assert goal.archived is True
    assert goal.archivedAt == NOW

    GoalCalculator.restore(goal)
    assert goal.archived is False
    assert goal.archivedAt is None


@pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
def test_clamp_refuses_non_finite_progress(value):
    with pytest.raises(ValueError):
        GoalCalculator.clamp(value)


def test_merge_keeps_timestamps_of_known_milestones():
    """Matching ids keep createdAt, and completedAt while the flag is unchanged"""
    earlier = NOW - timedelta(days=3)
    current = [
        GoalCalculator.new_milestone("Basics", completed=True, now=earlier, milestone_id="m1"),
        GoalCalculator.new_milestone("Grammar", now=earlier, milestone_id="m2"),
        GoalCalculator.new_milestone("Travel", completed=True, now=earlier, milestone_id="m3"),
    ]
    incoming = [
        {"id": "m1", "text": "Basics, revised", "completed": True},
        {"id": "m2", "text": "Grammar", "completed": True},
        {"id": "m3", "text": "Travel", "completed": False},
        {"id": None, "text": "Conversation", "completed": False},
    ]

    merged = GoalCalculator.merge_milestones(current, incoming, NOW)

    m1, m2, m3, new = merged
    assert m1["text"] == "Basics, revised"
    assert m1["createdAt"] == m1["completedAt"] == earlier.isoformat()
    assert m2["createdAt"] == earlier.isoformat()
    assert m2["completedAt"] == NOW.isoformat()
    assert m3["completedAt"] is None
    assert new["id"] and new["createdAt"] == NOW.isoformat()


def test_merge_takes_timestamps_of_imported_milestones():
    created = NOW - timedelta(days=10)
    done = NOW - timedelta(days=2)

    merged = GoalCalculator.merge_milestones([], [
        {"id": "m1", "text": "Imported", "completed": True, "createdAt": created, "completedAt": done},
    ], NOW)

    assert merged[0]["id"] == "m1"
    assert merged[0]["createdAt"] == created.isoformat()
    assert merged[0]["completedAt"] == done.isoformat()
