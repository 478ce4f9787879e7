"""
Account models.

An account backup is a single opaque agent-state string saved to one JSON
file per account. The decoded session is only used for display and for
naming backup files.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class DecodedSession:
    """Fields recovered from the agent-state value."""
    email: str = ""
    name: str = ""
    plan_slug: str = ""
    access_token: str = ""
    token_type: str = ""
    id_token: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'auth': {
                'access_token': self.access_token,
                'token_type': self.token_type,
                'id_token': self.id_token,
            },
            'context': {
                'email': self.email,
                'name': self.name,
                'plan': {'slug': self.plan_slug},
            },
        }


@dataclass(frozen=True)
class AccountBackup:
    """A saved agent-state value for one account."""
    account_id: str
    agent_state: str


@dataclass(frozen=True)
class AccountSummary:
    """One entry of the account list."""
    account_id: str
    session: DecodedSession
    modified_at: datetime

    @property
    def email(self) -> str:
        return self.session.email or self.account_id


@dataclass
class ImportResult:
    """Outcome of importing an exported account bundle."""
    restored_count: int = 0
    failed: List[Tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'restoredCount': self.restored_count,
            'failed': [{'filename': name, 'error': error} for name, error in self.failed],
        }


@dataclass(frozen=True)
class ExportedAccountFile:
    """A backup file as carried inside an export bundle."""
    filename: str
    content: Dict[str, Any]
    timestamp: Optional[int] = None
