"""Utility modules for routeguard."""

from routeguard.utils.cache import TTLCache
from routeguard.utils.deadline import Deadline, Sleep
from routeguard.utils.supervisor import RequestSupervisor

__all__ = ["Deadline", "RequestSupervisor", "Sleep", "TTLCache"]
