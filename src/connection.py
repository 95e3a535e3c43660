"""
Connection to a single Cloud SQL instance's security settings.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, List, Optional

import requests

from credentials import (
    CredentialProvider,
    acquire_credential,
    fetch_token,
    google_auth_token_provider,
    introspect_token,
)
from models import AuthorizedNetwork, Instance, Operation
from operations import CoordinatorState, OperationCoordinator
from templates import (
    API_BASE,
    AUTHORIZED_NETWORKS,
    INSTANCE,
    SSL_POLICY,
    USER_PASSWORD,
    RequestRenderer,
)
from transport import HttpExecutor


class NetworkPolicy(Enum):
    """How whitelist_ip treats a value that is already authorized."""

    APPEND = "append"  # add another entry regardless
    SKIP_EXISTING = "skip_existing"


class Connection:
    """
    Manages SSL enforcement, authorized networks and user passwords of one
    Cloud SQL instance.

    Every ACL mutation sends the complete desired network list; the API
    replaces the list wholesale. Edits made by someone else between the last
    instance fetch and a mutation are overwritten.
    """

    def __init__(
        self,
        project_id: str,
        instance_name: str,
        credential_provider: Optional[CredentialProvider] = None,
        session: Optional[requests.Session] = None,
        api_base: str = API_BASE,
        timeout_s: int = 60,
        poll_interval: float = 1.0,
        poll_timeout: Optional[float] = None,
        show_progress: bool = False,
        network_policy: NetworkPolicy = NetworkPolicy.APPEND,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Acquire a credential and fetch the instance.

        Args:
            project_id: GCP project ID
            instance_name: Cloud SQL instance name
            credential_provider: Callable returning a bearer token
                (Application Default Credentials by default)
            session: requests session for all HTTP calls
            api_base: Cloud SQL Admin API base URL
            timeout_s: Per-request timeout in seconds
            poll_interval: Seconds between operation status polls
            poll_timeout: Default polling deadline in seconds; None waits forever
            show_progress: Show a spinner while operations are polled
            network_policy: Duplicate handling for whitelist_ip
            logger: Logger to use instead of the module logger
            clock: Wall clock used for credential expiry
            sleep: Sleep function used between polls

        Raises:
            CredentialError: If no credential can be obtained
            CloudSqlError: If the instance cannot be fetched
        """
        self.project_id = project_id
        self.instance_name = instance_name
        self.api_base = api_base.rstrip("/")
        self.network_policy = network_policy
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock

        self.credential_provider = credential_provider or google_auth_token_provider()
        self.renderer = RequestRenderer(logger=self.logger)
        self.executor = HttpExecutor(
            session=session, timeout_s=timeout_s, logger=self.logger
        )
        self.coordinator = OperationCoordinator(
            self.executor,
            self.renderer,
            poll_interval=poll_interval,
            poll_timeout=poll_timeout,
            show_progress=show_progress,
            sleep=sleep,
            logger=self.logger,
        )
        self._credential_lock = threading.Lock()

        self.credential = acquire_credential(
            self.credential_provider,
            self.executor,
            self.renderer,
            clock=clock,
            logger=self.logger,
        )
        self.instance: Instance = self._fetch_instance()
        self.logger.info(
            f"Connected to {self.project_id}:{self.instance_name} "
            f"({self.instance.database_version or 'unknown version'})"
        )

    @classmethod
    def from_config(cls, config, **overrides) -> "Connection":
        """
        Create a connection from a ConnectionConfig.

        Args:
            config: ConnectionConfig instance
            **overrides: Keyword arguments passed through to the constructor

        Returns:
            Connected Connection
        """
        kwargs = dict(
            credential_provider=config.credential_provider(),
            api_base=config.api_base,
            timeout_s=config.timeout_s,
            poll_interval=config.poll_interval,
            poll_timeout=config.poll_timeout,
            show_progress=config.show_progress,
            network_policy=(
                NetworkPolicy.APPEND
                if config.allow_duplicate_networks
                else NetworkPolicy.SKIP_EXISTING
            ),
        )
        kwargs.update(overrides)
        return cls(config.project_id, config.instance_name, **kwargs)

    @property
    def last_operation(self) -> Optional[Operation]:
        """Most recent operation; None until a mutating call has been submitted."""
        return self.coordinator.last_operation

    @property
    def state(self) -> CoordinatorState:
        return self.coordinator.state

    @property
    def authorized_networks(self) -> List[AuthorizedNetwork]:
        return list(self.instance.authorized_networks)

    def get_public_ip(self) -> str:
        return self.instance.get_public_ip()

    def _url_data(self, **extra) -> dict:
        data = {
            "api_base": self.api_base,
            "project_id": self.instance.project,
            "instance_name": self.instance.name,
        }
        data.update(extra)
        return data

    def _fetch_instance(self) -> Instance:
        request = self.renderer.render(
            INSTANCE,
            {
                "api_base": self.api_base,
                "project_id": self.project_id,
                "instance_name": self.instance_name,
            },
            credential=self._fresh_credential(),
        )
        return self.executor.execute(request, Instance.from_dict)

    def refresh_instance(self) -> Instance:
        """Re-fetch the instance snapshot; waits for any running mutation."""
        with self.coordinator.exclusive():
            self.instance = self._fetch_instance()
            return self.instance

    def refresh_credential(self) -> None:
        """
        Re-acquire the bearer token and update the held credential in place.

        Raises:
            CredentialError: If the provider or introspection fails
        """
        with self._credential_lock:
            token = fetch_token(self.credential_provider)
            issued_at = self._clock()
            info = introspect_token(token, self.executor, self.renderer)
            self.credential.refresh(token, info, issued_at=issued_at)
        self.logger.info(f"Refreshed access token (expires in {info.expires_in}s)")

    def _fresh_credential(self):
        if self.credential.is_expired():
            self.logger.info("Access token expired; acquiring a new one")
            self.refresh_credential()
        return self.credential

    def _run(self, template, body_data: dict, on_done=None, timeout=None, **url_extra):
        with self.coordinator.exclusive():
            # expiry is checked once the previous operation has finished
            credential = self._fresh_credential()

            def build_request():
                return self.renderer.render(
                    template,
                    self._url_data(**url_extra),
                    body_data=body_data,
                    credential=credential,
                )

            return self.coordinator.run(
                build_request, credential, on_done=on_done, timeout=timeout
            )

    def enable_ssl(self, timeout: Optional[float] = None) -> Operation:
        """Require SSL for connections to the instance."""
        return self._modify_ssl_policy(True, timeout)

    def disable_ssl(self, timeout: Optional[float] = None) -> Operation:
        """Stop requiring SSL for connections to the instance."""
        return self._modify_ssl_policy(False, timeout)

    def _modify_ssl_policy(self, require_ssl: bool, timeout: Optional[float]):
        self.logger.info(
            f"{'Enabling' if require_ssl else 'Disabling'} SSL requirement on "
            f"{self.instance.name}"
        )

        def on_done(_operation: Operation) -> None:
            self.instance.settings.ip_configuration.require_ssl = require_ssl

        return self._run(
            SSL_POLICY, {"require_ssl": require_ssl}, on_done=on_done, timeout=timeout
        )

    def whitelist_ip(
        self, name: str, value: str, timeout: Optional[float] = None
    ) -> Optional[Operation]:
        """
        Authorize ``value`` (an IP or CIDR) under the label ``name``.

        With NetworkPolicy.SKIP_EXISTING an already-authorized value is left
        alone and None is returned without calling the API.
        """
        with self.coordinator.exclusive():
            if self.network_policy is NetworkPolicy.SKIP_EXISTING and any(
                n.value == value for n in self.instance.authorized_networks
            ):
                self.logger.info(f"{value} is already authorized; skipping")
                return None

            self.logger.info(f"Authorizing {value} ({name}) on {self.instance.name}")
            return self._replace_networks(
                lambda current: current + [AuthorizedNetwork(value=value, name=name)],
                timeout,
            )

    def blacklist_ip(self, value: str, timeout: Optional[float] = None) -> Operation:
        """Remove every authorized-network entry whose value equals ``value``."""
        self.logger.info(f"Removing {value} from {self.instance.name}")
        return self._replace_networks(
            lambda current: [n for n in current if n.value != value], timeout
        )

    def _replace_networks(
        self,
        change: Callable[[List[AuthorizedNetwork]], List[AuthorizedNetwork]],
        timeout: Optional[float],
    ) -> Operation:
        with self.coordinator.exclusive():
            credential = self._fresh_credential()
            # computed under the coordinator lock so concurrent calls compose
            desired = change(list(self.instance.authorized_networks))

            def build_request():
                return self.renderer.render(
                    AUTHORIZED_NETWORKS,
                    self._url_data(),
                    body_data={"networks": desired},
                    credential=credential,
                )

            def on_done(_operation: Operation) -> None:
                self.instance.settings.ip_configuration.authorized_networks = list(
                    desired
                )

            return self.coordinator.run(
                build_request, credential, on_done=on_done, timeout=timeout
            )

    def set_user_password(
        self, user: str, password: str, timeout: Optional[float] = None
    ) -> Operation:
        """Set the password of database user ``user``."""
        self.logger.info(f"Setting password for user {user} on {self.instance.name}")
        return self._run(
            USER_PASSWORD,
            {"user": user, "password": password},
            timeout=timeout,
            user=user,
        )
