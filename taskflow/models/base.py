from taskflow.db import Base, JSONDoc

__all__ = ["Base", "JSONDoc"]
