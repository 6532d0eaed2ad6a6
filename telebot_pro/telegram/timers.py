from telegram.ext import JobQueue


class _Handle:
    def __init__(self, job):
        self.job = job

    def cancel(self):
        if not self.job.removed:
            self.job.schedule_removal()


class JobQueueTimers:
    """Timer backend for JobScheduler backed by the bot's JobQueue."""

    def __init__(self, job_queue: JobQueue):
        self.job_queue = job_queue

    def arm(self, name, interval, callback):
        async def _fire(context):
            await callback()

        job = self.job_queue.run_repeating(_fire, interval=interval, first=interval, name=name)
        return _Handle(job)
