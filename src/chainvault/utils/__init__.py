"""Utility modules for chainvault."""

from chainvault.utils.locks import RecordLock, get_record_lock, try_record_lock

__all__ = ["RecordLock", "get_record_lock", "try_record_lock"]
