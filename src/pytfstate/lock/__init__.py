from .table import LockTable, LockOutcome, LockResult
