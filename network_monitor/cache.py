"""
内存缓存

每个数据域一个 CacheSlot，SnapshotStore 聚合所有 Slot。
每次更新都构造新的不可变 Snapshot 并整体替换引用，读者只会看到完整的快照。
每个 Slot 各自持有一把锁，不同数据域之间互不竞争。
"""

import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, Optional

from .errors import FetchError
from .models import ErrorInfo, Snapshot


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheSlot:
    """
    单个数据域的缓存槽

    - 读者：任意多个（HTTP 请求处理）
    - 写者：至多一个（所属 Poller）
    """

    def __init__(self, domain: str):
        self.domain = domain
        self._snapshot = Snapshot()
        self._lock = threading.Lock()

    def read(self) -> Snapshot:
        """返回最近一次提交的快照，不会失败"""
        with self._lock:
            return self._snapshot

    def write(self, value: Any, at: Optional[datetime] = None) -> Snapshot:
        """提交新值，清空 last_error"""
        if value is None:
            raise ValueError("Cannot commit an empty value")
        now = at or utcnow()
        snapshot = Snapshot(value=value, fetched_at=now, attempted_at=now)
        with self._lock:
            self._snapshot = snapshot
        return snapshot

    def record_error(self, error: Exception, at: Optional[datetime] = None) -> Snapshot:
        """记录失败，保留上一次成功的值"""
        now = at or utcnow()
        if isinstance(error, FetchError):
            info = ErrorInfo(kind=error.kind, message=error.message, code=error.code, at=now)
        else:
            info = ErrorInfo(kind="malformed_response", message=str(error), at=now)

        with self._lock:
            prev = self._snapshot
            snapshot = Snapshot(
                value=prev.value,
                fetched_at=prev.fetched_at,
                attempted_at=now,
                last_error=info,
                consecutive_failures=prev.consecutive_failures + 1,
            )
            self._snapshot = snapshot
        return snapshot

    @property
    def populated(self) -> bool:
        return self.read().populated


class SnapshotStore:
    """所有数据域缓存槽的集合，HTTP 层唯一读取对象"""

    def __init__(self, domains: Iterable[str] = ()):
        self._slots: Dict[str, CacheSlot] = {}
        for domain in domains:
            self.add_slot(domain)

    def add_slot(self, domain: str) -> CacheSlot:
        if domain in self._slots:
            raise ValueError(f"Duplicate domain: {domain}")
        slot = CacheSlot(domain)
        self._slots[domain] = slot
        return slot

    def slot(self, domain: str) -> CacheSlot:
        return self._slots[domain]

    def read(self, domain: str) -> Snapshot:
        """读取单个数据域；未注册的数据域视为未填充"""
        slot = self._slots.get(domain)
        if slot is None:
            return Snapshot()
        return slot.read()

    def domains(self) -> Iterator[str]:
        return iter(list(self._slots))

    def __contains__(self, domain: str) -> bool:
        return domain in self._slots
