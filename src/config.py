"""
Configuration management for the Cloud SQL security manager.
"""

from dataclasses import dataclass
from typing import Optional

from credentials import (
    CredentialProvider,
    gcloud_token_provider,
    google_auth_token_provider,
)
from templates import API_BASE

TOKEN_SOURCES = ("google-auth", "gcloud")


@dataclass
class ConnectionConfig:
    """Configuration for a Connection to one Cloud SQL instance."""

    project_id: str
    instance_name: str
    api_base: str = API_BASE
    timeout_s: int = 60
    poll_interval: float = 1.0
    poll_timeout: Optional[float] = None
    token_source: str = "google-auth"
    show_progress: bool = True
    allow_duplicate_networks: bool = True
    verbose: bool = False
    log_file: Optional[str] = None

    def __post_init__(self):
        if self.token_source not in TOKEN_SOURCES:
            raise ValueError(
                f"token_source must be one of {', '.join(TOKEN_SOURCES)}, "
                f"got {self.token_source!r}"
            )

    @classmethod
    def from_args(cls, args) -> "ConnectionConfig":
        """
        Create configuration from command-line arguments.

        Args:
            args: Parsed argparse arguments

        Returns:
            ConnectionConfig instance
        """
        return cls(
            project_id=args.project,
            instance_name=args.instance,
            api_base=args.api_base,
            timeout_s=args.timeout,
            poll_interval=args.poll_interval,
            poll_timeout=args.poll_timeout,
            token_source=args.token_source,
            show_progress=not args.no_progress,
            allow_duplicate_networks=not args.no_duplicates,
            verbose=args.verbose,
            log_file=args.log_file,
        )

    def credential_provider(self) -> CredentialProvider:
        """Return the token provider selected by ``token_source``."""
        if self.token_source == "gcloud":
            return gcloud_token_provider()
        return google_auth_token_provider()
