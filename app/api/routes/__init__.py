from . import sermons, tasks, usage

__all__ = ["sermons", "tasks", "usage"]
