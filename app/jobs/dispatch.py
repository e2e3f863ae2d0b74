"""Best-effort task dispatch.

Request handlers hand side effects to the Celery workers through
:func:`enqueue` and never wait on them. A broker outage is logged and
otherwise ignored; work that must not be lost (print jobs) is also kept in
the database for the periodic sweeper.
"""

import structlog

logger = structlog.get_logger()


def enqueue(task_name: str, *args) -> bool:
    """Send a task to the workers without waiting for it"""
    from app.jobs.celery_app import celery_app

    try:
        celery_app.send_task(task_name, args=[str(arg) for arg in args])
        return True
    except Exception as e:
        logger.error("Failed to enqueue task", task=task_name, error=str(e))
        return False
