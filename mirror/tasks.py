from huey import signals
from huey.contrib.djhuey import HUEY, db_task

from mirror.orchestrator import Job, MediaSyncOrchestrator


def get_orchestrator():
    return MediaSyncOrchestrator()


@db_task()
def process_resource(job_data):
    """
    Sync one media reference into the asset store.

    Retry and failure bookkeeping happen in the signal handlers below, so an
    exception raised here is the normal way to report a failed attempt.
    """
    job = Job.from_dict(job_data)
    return get_orchestrator().execute(job)


def _is_process_resource(task):
    return isinstance(task, process_resource.task_class)


@HUEY.signal(signals.SIGNAL_ERROR)
def process_resource_failed(signal, task, exc):
    if not _is_process_resource(task):
        return
    get_orchestrator().handle_failure(Job.from_dict(task.args[0]), exc)


@HUEY.signal(signals.SIGNAL_LOCKED)
def process_resource_locked(signal, task):
    # Another worker holds the key; only the lock holder may touch its row
    if not _is_process_resource(task):
        return
    get_orchestrator().handle_locked(Job.from_dict(task.args[0]))


@HUEY.signal(signals.SIGNAL_COMPLETE)
def process_resource_completed(signal, task):
    if not _is_process_resource(task):
        return
    get_orchestrator().handle_success(Job.from_dict(task.args[0]))
