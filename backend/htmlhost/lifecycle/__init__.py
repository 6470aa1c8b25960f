from .reaper import LifecycleReaper, ReconcileReport, SweepReport

__all__ = ["LifecycleReaper", "ReconcileReport", "SweepReport"]
