from . import push, tasks

__all__ = ["push", "tasks"]
