import uuid
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from fastapi import HTTPException

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Outcome of a messaging operation: either ``data`` or ``error``."""

    data: Optional[T] = None
    error: Optional[str] = None
    status_code: int = 200

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Any = None, status_code: int = 200) -> "ServiceResult":
        return cls(data=data, status_code=status_code)

    @classmethod
    def failure(cls, error: str, status_code: int = 400) -> "ServiceResult":
        return cls(error=error, status_code=status_code)

    def unwrap(self) -> T:
        if not self.ok:
            raise HTTPException(status_code=self.status_code, detail=self.error)
        return self.data


@dataclass(frozen=True)
class ConversationResult:
    conversation_id: Optional[uuid.UUID] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.conversation_id is not None and self.error is None
