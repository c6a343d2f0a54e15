from __future__ import annotations

from dataclasses import replace
from datetime import date

from prm.domain import rules
from prm.domain.dates import utc_now
from prm.domain.models import Task
from prm.domain.records import to_record
from prm.domain.stages import TaskStatus
from prm.services.events import EventBus, emit
from prm.services.repository import ensure_saved, load_list, save_list
from prm.services.utils import new_id
from prm.store.sqlite import CollectionStore


class TaskError(RuntimeError):
    pass


def add_task(
    store: CollectionStore,
    title: str,
    due_on: date | None = None,
    details: str | None = None,
    contact_id: str | None = None,
    deal_id: str | None = None,
    *,
    bus: EventBus | None = None,
) -> Task:
    rules.require(title, "title")
    now = utc_now()
    task = Task(
        task_id=new_id(),
        title=title,
        status=TaskStatus.OPEN.value,
        due_on=due_on,
        details=details,
        contact_id=contact_id,
        deal_id=deal_id,
        created_at=now,
        updated_at=now,
    )
    tasks = load_list(store, "tasks", Task)
    tasks.append(task)
    ensure_saved(save_list(store, "tasks", tasks), TaskError, "tasks")
    emit(bus, "task:added", {"id": task.task_id, "record": to_record(task)})
    return task


def set_status(
    store: CollectionStore,
    task_id: str,
    status: str,
    *,
    bus: EventBus | None = None,
) -> Task:
    rules.validate_enum(status, [s.value for s in TaskStatus], "status")
    tasks = load_list(store, "tasks", Task)
    for index, task in enumerate(tasks):
        if task.task_id == task_id:
            tasks[index] = replace(task, status=status, updated_at=utc_now())
            ensure_saved(save_list(store, "tasks", tasks), TaskError, "tasks")
            emit(bus, "task:updated", {"id": task_id, "record": to_record(tasks[index]), "changed_fields": ["status"]})
            return tasks[index]
    raise TaskError(f"Task not found: {task_id}")


def list_tasks(store: CollectionStore, status: str | None = None) -> list[Task]:
    """Tasks ordered by due date; undated tasks last."""
    tasks = load_list(store, "tasks", Task)
    if status:
        rules.validate_enum(status, [s.value for s in TaskStatus], "status")
        tasks = [task for task in tasks if task.status == status]
    return sorted(tasks, key=lambda task: (task.due_on is None, task.due_on or date.max))
