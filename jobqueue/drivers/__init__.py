"""
Queue drivers.
"""

from jobqueue.drivers.base import ClientState, LazyClient, QueueDriver
from jobqueue.drivers.mock import MockEnqueuedJob, MockQueueDriver
from jobqueue.drivers.scheduler import EventBridgeSchedulerConfig, EventBridgeSchedulerDriver
from jobqueue.drivers.sqs import SQSDriverConfig, SQSQueueDriver

__all__ = [
    "QueueDriver",
    "ClientState",
    "LazyClient",
    "SQSDriverConfig",
    "SQSQueueDriver",
    "EventBridgeSchedulerConfig",
    "EventBridgeSchedulerDriver",
    "MockEnqueuedJob",
    "MockQueueDriver",
]
