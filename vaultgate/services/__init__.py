"""Service layer: sandboxing, approvals, auditing and the vault collaborators."""

from .audit import AuditLogger
from .auth import AuthError, SessionAuth, is_loopback
from .config import AppConfig, get_config, reload_config, resolve_search_executable
from .consent import (
    CallbackConsent,
    ConsentSurface,
    StaticConsent,
    TerminalConsent,
    build_consent_surface,
)
from .errors import (
    OperationDeniedError,
    PathValidationError,
    SearchError,
    SearchUnavailableError,
    TaskError,
    ToolArgumentError,
    ToolError,
    UnknownToolError,
)
from .operation_guard import APPROVAL_TOOLS, ApprovalOutcome, OperationGuard
from .path_validator import PathValidationResult, PathValidator
from .rate_limit import RateDecision, RateLimiter
from .search import SearchClient
from .tasks import TaskStore
from .tool_executor import ToolExecutor
from .vault import VaultService, sanitize_path

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "resolve_search_executable",
    "AuditLogger",
    "AuthError",
    "SessionAuth",
    "is_loopback",
    "ConsentSurface",
    "CallbackConsent",
    "StaticConsent",
    "TerminalConsent",
    "build_consent_surface",
    "ToolError",
    "UnknownToolError",
    "ToolArgumentError",
    "PathValidationError",
    "OperationDeniedError",
    "TaskError",
    "SearchError",
    "SearchUnavailableError",
    "OperationGuard",
    "ApprovalOutcome",
    "APPROVAL_TOOLS",
    "PathValidator",
    "PathValidationResult",
    "RateLimiter",
    "RateDecision",
    "SearchClient",
    "TaskStore",
    "ToolExecutor",
    "VaultService",
    "sanitize_path",
]
