from . import emails, health, scheduler

__all__ = ["emails", "health", "scheduler"]
