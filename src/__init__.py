"""
Cloud SQL Security Manager: SSL, authorized networks and user passwords.
"""

from config import ConnectionConfig
from connection import Connection, NetworkPolicy
from credentials import Credential, TokenInfo, acquire_credential
from log_utils import setup_logging
from models import AuthorizedNetwork, Instance, Operation
from operations import CoordinatorState, OperationCoordinator
from templates import RequestRenderer, RequestTemplate
from transport import HttpExecutor

__all__ = [
    "ConnectionConfig",
    "Connection",
    "NetworkPolicy",
    "Credential",
    "TokenInfo",
    "acquire_credential",
    "setup_logging",
    "AuthorizedNetwork",
    "Instance",
    "Operation",
    "CoordinatorState",
    "OperationCoordinator",
    "RequestRenderer",
    "RequestTemplate",
    "HttpExecutor",
]
