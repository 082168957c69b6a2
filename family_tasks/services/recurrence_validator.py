"""Recurrence Validator."""
from datetime import datetime
from typing import Any, Dict, Optional

from family_tasks.models.task import RECURRENCE_PATTERNS, TASK_PRIORITIES


class RecurrenceValidator:
    """Validate recurrence settings and priorities for tasks."""

    @staticmethod
    def validate_recurrence_pattern(recurrence_pattern: Optional[str]) -> Dict[str, Any]:
        """
        Validate a recurrence pattern.

        Args:
            recurrence_pattern: Recurrence type (daily, weekly, monthly)

        Returns:
            Dict with validation result
        """
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        if recurrence_pattern not in RECURRENCE_PATTERNS:
            result["valid"] = False
            result["errors"].append(
                f"Recurrence must be one of: {', '.join(RECURRENCE_PATTERNS)}, got: {recurrence_pattern}"
            )

        return result

    @staticmethod
    def validate_task_with_recurrence(task_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate the recurrence fields of a task.

        Args:
            task_data: Task field dictionary (is_recurring, recurrence_pattern,
                due_date, recurrence_end_date, parent_task_id)

        Returns:
            Dict with validation result
        """
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        is_recurring = bool(task_data.get("is_recurring"))
        recurrence_pattern = task_data.get("recurrence_pattern")
        due_date: Optional[datetime] = task_data.get("due_date")
        end_date: Optional[datetime] = task_data.get("recurrence_end_date")

        if task_data.get("parent_task_id") is not None and is_recurring:
            result["valid"] = False
            result["errors"].append("A generated occurrence cannot itself be recurring")
            return result

        if recurrence_pattern:
            validation = RecurrenceValidator.validate_recurrence_pattern(recurrence_pattern)
            if not validation["valid"]:
                result["valid"] = False
                result["errors"].extend(validation["errors"])
                return result

        if is_recurring and not recurrence_pattern:
            result["valid"] = False
            result["errors"].append("Recurring task requires a recurrence pattern")
            return result

        if is_recurring and not due_date:
            result["valid"] = False
            result["errors"].append("Recurring task requires a due date")
            return result

        if end_date and due_date and end_date < due_date:
            result["warnings"].append("Recurrence ends before the first due date; no occurrences will be created")

        if recurrence_pattern and not is_recurring:
            result["warnings"].append("Recurrence pattern is ignored unless the task is recurring")

        return result

    @staticmethod
    def validate_priority(priority: str) -> Dict[str, Any]:
        """
        Validate priority value.

        Args:
            priority: Priority string

        Returns:
            Dict with validation result
        """
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        if not priority:
            return result

        if priority not in TASK_PRIORITIES:
            result["valid"] = False
            result["errors"].append(f"Priority must be one of: low, medium, high, got: {priority}")

        return result
