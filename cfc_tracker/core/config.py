"""
Application settings read from environment variables
"""
import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """
    Runtime settings of the API.

    Attributes:
        public_report_user_name: Name of the user shown by the public report.
            When unset (or unknown) the first user with recorded notes is used.
        session_cookie_name: Cookie carrying the session token.
        log_level: Root log level name.
    """

    public_report_user_name: Optional[str] = None
    session_cookie_name: str = "session_token"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables"""
        return cls(
            public_report_user_name=os.getenv("PUBLIC_REPORT_USER_NAME") or None,
            session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "session_token"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
