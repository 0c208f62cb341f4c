"""Scheduling core of the bot.

Contains the publish queue, the single-flight Drain Loop, the timer-driven
Poll Loop, and the runner that wires them to the feed client and publisher.
"""

from .queue import PublishQueue
from .drain import Drainer, DrainGuard
from .poller import Poller
from .runner import WomptronRunner

__all__ = [
    "PublishQueue",
    "Drainer",
    "DrainGuard",
    "Poller",
    "WomptronRunner",
]
