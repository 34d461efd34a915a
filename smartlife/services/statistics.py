"""
Aggregate figures for the stats and dashboard endpoints.

Every function takes already-loaded records (ORM rows or anything exposing
the same attributes) plus the reference ``today``/``now``, so none of them
touch the database or the clock.
"""
import math
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

STREAK_WINDOW_DAYS = 7
RECENT_NOTE_DAYS = 7
TOP_CATEGORY_COUNT = 5
RECENT_ACTIVITY_LIMIT = 10


def percent(part: float, whole: float) -> int:
    """Rounded percentage, 0 when ``whole`` is 0."""
    if not whole:
        return 0
    return int(math.floor(part / whole * 100 + 0.5))


def percent_change(current: float, previous: float) -> float:
    if not previous:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def _previous_month(year: int, month: int) -> tuple[int, int]:
    return (year - 1, 12) if month == 1 else (year, month - 1)


# --- Tasks ---

def is_task_overdue(task, today: date) -> bool:
    return task.dueDate is not None and task.dueDate < today and task.status != "completed"


def task_stats(tasks: Iterable, today: date) -> dict:
    tasks = list(tasks)
    by_status = {"pending": 0, "in-progress": 0, "completed": 0, "cancelled": 0}
    by_priority = {"low": 0, "medium": 0, "high": 0}
    overdue = 0
    for t in tasks:
        by_status[t.status] = by_status.get(t.status, 0) + 1
        by_priority[t.priority] = by_priority.get(t.priority, 0) + 1
        if is_task_overdue(t, today):
            overdue += 1

    total = len(tasks)
    return {
        "total": total,
        "completed": by_status["completed"],
        "inProgress": by_status["in-progress"],
        "pending": by_status["pending"],
        "cancelled": by_status["cancelled"],
        "overdue": overdue,
        "byStatus": by_status,
        "byPriority": by_priority,
        "completionRate": percent(by_status["completed"], total),
        "overdueRate": percent(overdue, total),
    }


# --- Goals ---

def days_remaining(target: date, today: date) -> int:
    return (target - today).days


def goal_pace(goal, today: date) -> Optional[str]:
    """
    'onTrack' when the progress still needed per remaining day is at most
    1%, 'atRisk' otherwise. None for finished, archived or undated goals.
    """
    if goal.status == "completed" or goal.archived or goal.targetDate is None:
        return None
    needed_per_day = (100 - goal.progress) / max(1, days_remaining(goal.targetDate, today))
    return "onTrack" if needed_per_day <= 1 else "atRisk"


def goal_stats(goals: Iterable, today: date) -> dict:
    goals = list(goals)
    completed = [g for g in goals if g.status == "completed" and not g.archived]
    archived = [g for g in goals if g.archived]
    active = [g for g in goals if g.status != "completed" and not g.archived]
    overdue = [
        g for g in goals
        if g.targetDate is not None and g.targetDate < today and g.status != "completed"
    ]
    paces = [goal_pace(g, today) for g in goals]
    average = round(sum(g.progress for g in goals) / len(goals), 1) if goals else 0
    return {
        "total": len(goals),
        "active": len(active),
        "completed": len(completed),
        "archived": len(archived),
        "overdue": len(overdue),
        "onTrack": paces.count("onTrack"),
        "atRisk": paces.count("atRisk"),
        "averageProgress": average,
        "completionRate": percent(len(completed), len(goals)),
    }


# --- Health ---

def workout_streak(entries: Iterable, today: date, window: int = STREAK_WINDOW_DAYS) -> int:
    """Consecutive days with a workout, counting back from today."""
    workout_days = {e.date for e in entries if e.type == "workout"}
    streak = 0
    for i in range(window):
        if today - timedelta(days=i) in workout_days:
            streak += 1
        else:
            break
    return streak


def current_weight(entries: Iterable) -> Optional[float]:
    weights = [e for e in entries if e.type == "weight" and e.weight is not None]
    if not weights:
        return None
    latest = max(weights, key=lambda e: (e.date, e.createdAt))
    return latest.weight


def health_stats(entries: Iterable, today: date) -> dict:
    entries = list(entries)
    workouts = [e for e in entries if e.type == "workout"]

    week = []
    for i in range(STREAK_WINDOW_DAYS - 1, -1, -1):
        day = today - timedelta(days=i)
        day_entries = [e for e in entries if e.date == day]
        week.append({
            "day": day.isoformat(),
            "workouts": sum(1 for e in day_entries if e.type == "workout"),
            "calories": sum(e.calories or 0 for e in day_entries),
            "water": sum(e.water or 0 for e in day_entries if e.type == "water"),
        })

    return {
        "totalEntries": len(entries),
        "totalWorkouts": len(workouts),
        "totalCalories": sum(e.calories or 0 for e in entries),
        "totalDuration": sum(e.duration or 0 for e in workouts),
        "currentWeight": current_weight(entries),
        "totalWater": sum(e.water or 0 for e in entries if e.type == "water"),
        "workoutStreak": workout_streak(entries, today),
        "weeklyData": week,
    }


# --- Finance ---

def _sum(entries: Iterable, entry_type: str) -> float:
    return round(sum(e.amount for e in entries if e.type == entry_type), 2)


def _in_month(entries: Iterable, year: int, month: int) -> List:
    return [e for e in entries if e.date.year == year and e.date.month == month]


def finance_stats(entries: Iterable, today: date) -> dict:
    entries = list(entries)
    total_income = _sum(entries, "income")
    total_expenses = _sum(entries, "expense")

    this_month = _in_month(entries, today.year, today.month)
    last_month = _in_month(entries, *_previous_month(today.year, today.month))
    monthly_income = _sum(this_month, "income")
    monthly_expenses = _sum(this_month, "expense")

    by_category = defaultdict(float)
    for e in entries:
        if e.type == "expense":
            by_category[e.category] += e.amount
    top = sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)[:TOP_CATEGORY_COUNT]

    trend = []
    for i, name in enumerate(MONTHS, start=1):
        month_entries = _in_month(entries, today.year, i)
        income = _sum(month_entries, "income")
        expenses = _sum(month_entries, "expense")
        trend.append({
            "month": name,
            "income": income,
            "expenses": expenses,
            "balance": round(income - expenses, 2),
        })

    return {
        "totalIncome": total_income,
        "totalExpenses": total_expenses,
        "balance": round(total_income - total_expenses, 2),
        "monthlyIncome": monthly_income,
        "monthlyExpenses": monthly_expenses,
        "monthlyNet": round(monthly_income - monthly_expenses, 2),
        "incomeChange": percent_change(monthly_income, _sum(last_month, "income")),
        "expenseChange": percent_change(monthly_expenses, _sum(last_month, "expense")),
        "topCategories": [{"category": c, "amount": round(a, 2)} for c, a in top],
        "monthlyTrend": trend,
    }


# --- Notes ---

def note_stats(notes: Iterable, now: datetime) -> dict:
    notes = list(notes)
    completed = sum(1 for n in notes if n.completed)
    since = now - timedelta(days=RECENT_NOTE_DAYS)
    return {
        "total": len(notes),
        "completed": completed,
        "pending": len(notes) - completed,
        "recent": sum(1 for n in notes if n.createdAt >= since),
    }


# --- Dashboard ---

def recent_activity(limit: int = RECENT_ACTIVITY_LIMIT, **collections: Iterable) -> List[dict]:
    """
    Most recently created items across collections, newest first.

    Keyword names become the ``type`` of each item, e.g.
    ``recent_activity(task=tasks, note=notes)``.
    """
    items = []
    for kind, records in collections.items():
        for r in records:
            items.append({
                "type": kind,
                "id": str(r.id),
                "title": getattr(r, "title", None) or getattr(r, "text", None),
                "createdAt": r.createdAt,
            })
    items.sort(key=lambda i: i["createdAt"], reverse=True)
    return items[:limit]
