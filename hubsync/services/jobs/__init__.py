"""
Background Job Queue
Dramatiq-based async task processing
"""
from hubsync.services.jobs.broker import broker
from hubsync.services.jobs.tasks import pull_hubspot_task, pull_data_from_hubspot

__all__ = ["broker", "pull_hubspot_task", "pull_data_from_hubspot"]
