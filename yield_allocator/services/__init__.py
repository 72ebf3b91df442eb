"""Service modules"""
from .lifecycle import LifecycleManager
from .report import build_report
from .scheduler import CycleScheduler

__all__ = ["LifecycleManager", "CycleScheduler", "build_report"]
