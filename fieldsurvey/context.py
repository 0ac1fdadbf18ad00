from dataclasses import dataclass
from typing import Optional

ROLE_ADMIN = 'admin'
ROLE_COMPANY = 'company'
ROLE_RESEARCHER = 'researcher'
ROLES = (ROLE_ADMIN, ROLE_COMPANY, ROLE_RESEARCHER)


@dataclass(frozen=True)
class SessionContext:
    """Who is asking. Built once per request and passed into service calls."""

    role: str
    profile_id: Optional[str]
    name: str = ''

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_company(self) -> bool:
        return self.role == ROLE_COMPANY

    @property
    def is_researcher(self) -> bool:
        return self.role == ROLE_RESEARCHER
