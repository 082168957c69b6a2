"""Task and user store used by the reminder core."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from family_tasks.errors import NotFoundError, ValidationError
from family_tasks.models.task import Task
from family_tasks.models.user import NOTIFICATION_CHANNELS, User, normalize_phone_number
from family_tasks.services.recurrence_validator import RecurrenceValidator

logger = logging.getLogger(__name__)

USER_FIELDS = {"name", "color", "phone_number", "notification_preference"}


class TaskService:
    """Persistence for users and tasks, with the queries the scheduler needs."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    # Users

    def create_user(
        self,
        name: str,
        color: str = "#4169E1",
        phone_number: Optional[str] = None,
        notification_preference: str = "sms",
    ) -> User:
        """Create a household member; the phone number is stored with a leading +."""
        if notification_preference not in NOTIFICATION_CHANNELS:
            raise ValidationError(f"Notification preference must be one of: sms, whatsapp, got: {notification_preference}")

        user = User(
            name=name,
            color=color,
            phone_number=normalize_phone_number(phone_number),
            notification_preference=notification_preference,
        )
        with self._session() as session:
            session.add(user)
            session.commit()
            session.refresh(user)
        return user

    def get_user(self, user_id: int) -> Optional[User]:
        with self._session() as session:
            return session.get(User, user_id)

    def list_users(self) -> List[User]:
        with self._session() as session:
            return list(session.exec(select(User).order_by(User.id)).all())

    def update_user(self, user_id: int, updates: Dict[str, Any]) -> User:
        """
        Apply a partial profile update.

        Args:
            user_id: User to change
            updates: Any of name, color, phone_number, notification_preference;
                a ``None`` phone number clears it

        Raises:
            ValidationError: On an unknown field or preference
            NotFoundError: If the user does not exist
        """
        unknown = set(updates) - USER_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update user fields: {', '.join(sorted(unknown))}")
        cleared = sorted(field for field, value in updates.items() if not value and field != "phone_number")
        if cleared:
            raise ValidationError(f"Cannot clear user fields: {', '.join(cleared)}")
        preference = updates.get("notification_preference")
        if "notification_preference" in updates and preference not in NOTIFICATION_CHANNELS:
            raise ValidationError(f"Notification preference must be one of: sms, whatsapp, got: {preference}")

        with self._session() as session:
            user = session.get(User, user_id)
            if not user:
                raise NotFoundError(f"User {user_id} not found")
            for field, value in updates.items():
                if field == "phone_number":
                    value = normalize_phone_number(value)
                setattr(user, field, value)
            session.add(user)
            session.commit()
            session.refresh(user)

        logger.info(f"Updated user {user_id}: {', '.join(sorted(updates)) or 'no changes'}")
        return user

    def update_user_preference(self, user_id: int, preference: str) -> User:
        """Overwrite a user's channel preference (last write wins)."""
        if preference not in NOTIFICATION_CHANNELS:
            raise ValidationError(f"Notification preference must be one of: sms, whatsapp, got: {preference}")

        with self._session() as session:
            user = session.get(User, user_id)
            if not user:
                raise NotFoundError(f"User {user_id} not found")
            user.notification_preference = preference
            session.add(user)
            session.commit()
            session.refresh(user)
        return user

    # Tasks

    def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        assigned_to: Optional[int] = None,
        priority: str = "medium",
        due_date: Optional[datetime] = None,
        reminder_time: Optional[datetime] = None,
        recurrence_pattern: Optional[str] = None,
        recurrence_end_date: Optional[datetime] = None,
        is_recurring: bool = False,
        parent_task_id: Optional[int] = None,
        reminder_processed: bool = False,
    ) -> Task:
        """
        Validate and persist a new task.

        Datetimes must already be naive UTC. Pass ``reminder_processed=True``
        for a task whose reminder is sent directly rather than by the scheduler.

        Raises:
            ValidationError: On an invalid priority or recurrence combination
            NotFoundError: If the assignee does not exist
        """
        priority_check = RecurrenceValidator.validate_priority(priority)
        if not priority_check["valid"]:
            raise ValidationError("; ".join(priority_check["errors"]))

        recurrence_check = RecurrenceValidator.validate_task_with_recurrence({
            "is_recurring": is_recurring,
            "recurrence_pattern": recurrence_pattern,
            "due_date": due_date,
            "recurrence_end_date": recurrence_end_date,
            "parent_task_id": parent_task_id,
        })
        if not recurrence_check["valid"]:
            raise ValidationError("; ".join(recurrence_check["errors"]))
        for warning in recurrence_check["warnings"]:
            logger.warning(f"Task '{title}': {warning}")

        if assigned_to is not None and self.get_user(assigned_to) is None:
            raise NotFoundError(f"User {assigned_to} not found")

        task = Task(
            title=title,
            description=description,
            assigned_to=assigned_to,
            priority=priority or "medium",
            due_date=due_date,
            reminder_time=reminder_time,
            reminder_processed=reminder_processed,
            recurrence_pattern=recurrence_pattern,
            recurrence_end_date=recurrence_end_date,
            is_recurring=is_recurring,
            parent_task_id=parent_task_id,
        )
        return self.insert_task(task)

    def insert_task(self, task: Task) -> Task:
        """Persist an already-built task (used for generated occurrences)."""
        if task.parent_task_id is not None and task.is_recurring:
            raise ValidationError("A generated occurrence cannot itself be recurring")

        with self._session() as session:
            session.add(task)
            session.commit()
            session.refresh(task)
        return task

    def get_task(self, task_id: int) -> Optional[Task]:
        with self._session() as session:
            return session.get(Task, task_id)

    def list_tasks(self, include_completed: bool = True) -> List[Task]:
        statement = select(Task)
        if not include_completed:
            statement = statement.where(Task.completed == False)  # noqa: E712
        statement = statement.order_by(Task.due_date.asc().nullslast(), Task.id.asc())
        with self._session() as session:
            return list(session.exec(statement).all())

    def list_occurrences(self, parent_task_id: int) -> List[Task]:
        statement = (
            select(Task)
            .where(Task.parent_task_id == parent_task_id)
            .order_by(Task.due_date.asc())
        )
        with self._session() as session:
            return list(session.exec(statement).all())

    def set_completed(self, task_id: int, completed: bool = True) -> Task:
        with self._session() as session:
            task = session.get(Task, task_id)
            if not task:
                raise NotFoundError(f"Task {task_id} not found")
            task.completed = completed
            task.updated_at = datetime.utcnow()
            session.add(task)
            session.commit()
            session.refresh(task)
        return task

    def delete_task(self, task_id: int) -> bool:
        """
        Delete a task.

        Occurrences of a deleted recurring parent are kept as standalone
        tasks: their parent reference is cleared, nothing is retracted.
        """
        with self._session() as session:
            task = session.get(Task, task_id)
            if not task:
                return False

            orphans = session.exec(select(Task).where(Task.parent_task_id == task_id)).all()
            for occurrence in orphans:
                occurrence.parent_task_id = None
                occurrence.updated_at = datetime.utcnow()
                session.add(occurrence)

            session.delete(task)
            session.commit()

        if orphans:
            logger.info(f"Deleted task {task_id}; {len(orphans)} occurrences left standalone")
        return True

    # Reminder queries

    def list_due_reminders(self, window_start: datetime, window_end: datetime) -> List[Task]:
        """
        Tasks whose reminder falls inside ``(window_start, window_end]``.

        Only unprocessed, incomplete, assigned tasks qualify. Results are
        ordered by reminder time, then id.
        """
        statement = (
            select(Task)
            .where(Task.reminder_processed == False)  # noqa: E712
            .where(Task.completed == False)  # noqa: E712
            .where(Task.assigned_to.is_not(None))
            .where(Task.reminder_time.is_not(None))
            .where(Task.reminder_time > window_start)
            .where(Task.reminder_time <= window_end)
            .order_by(Task.reminder_time.asc(), Task.id.asc())
        )
        with self._session() as session:
            return list(session.exec(statement).all())

    def mark_reminder_processed(self, task_id: int) -> bool:
        """Flip ``reminder_processed`` to true. Returns False if the task is gone."""
        with self._session() as session:
            task = session.get(Task, task_id)
            if not task:
                return False
            if not task.reminder_processed:
                task.reminder_processed = True
                task.updated_at = datetime.utcnow()
                session.add(task)
                session.commit()
        return True

    def sweep_stale_reminders(self, before: datetime) -> int:
        """
        Mark every unprocessed reminder older than ``before`` as processed.

        Returns:
            Number of tasks swept
        """
        statement = (
            select(Task)
            .where(Task.reminder_processed == False)  # noqa: E712
            .where(Task.reminder_time.is_not(None))
            .where(Task.reminder_time < before)
        )
        with self._session() as session:
            stale = session.exec(statement).all()
            now = datetime.utcnow()
            for task in stale:
                task.reminder_processed = True
                task.updated_at = now
                session.add(task)
            session.commit()
        return len(stale)
