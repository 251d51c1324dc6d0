from latepass.tasks.celery_app import celery
from latepass.tasks import worker_jobs

@celery.task(name="latepass.tasks.jobs.expire_late_pass_tickets")
def expire_late_pass_tickets():
    return worker_jobs.expire_late_pass_tickets()
