"""Runtime configuration for the sourcekit bridge."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import os
import shlex

from dotenv import load_dotenv

from sourcekit_bridge.exceptions import ConfigurationError
from sourcekit_bridge.lsp.session import LanguageServerConfig

DEFAULT_EXECUTABLE = "sourcekit-lsp"
DEFAULT_LANGUAGE_ID = "swift"
DEFAULT_DIAGNOSTICS_SETTLE_SECONDS = 0.1


def _optional_float(name: str, raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


@dataclass
class BridgeConfig:
    """Configuration for one bridge instance.

    Attributes:
        workspace_root: Directory the language server is started in and
            initialized for.
        executable: Language server executable (name on PATH or a path).
        extra_args: Extra arguments appended to the launch command.
        language_id: languageId sent with every opened document.
        request_timeout_seconds: Optional per-request timeout. None waits
            indefinitely.
        diagnostics_settle_seconds: Delay between opening a document and
            reading its cached diagnostics.
        initialization_options: Passed verbatim in the initialize request.
    """

    workspace_root: str = "."
    executable: str = DEFAULT_EXECUTABLE
    extra_args: List[str] = field(default_factory=list)
    language_id: str = DEFAULT_LANGUAGE_ID
    request_timeout_seconds: Optional[float] = None
    diagnostics_settle_seconds: float = DEFAULT_DIAGNOSTICS_SETTLE_SECONDS
    initialization_options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.workspace_root = str(Path(self.workspace_root).expanduser().resolve())

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None, **overrides: Any) -> "BridgeConfig":
        """Build a config from SOURCEKIT_* environment variables.

        Explicit keyword overrides win over the environment; ``None`` values
        are ignored so CLI options can be passed through unconditionally.
        """
        if dotenv_path:
            load_dotenv(dotenv_path, override=True)

        values: Dict[str, Any] = {
            "workspace_root": os.getenv("SOURCEKIT_WORKSPACE_ROOT", os.getcwd()),
            "executable": os.getenv("SOURCEKIT_LSP_PATH") or DEFAULT_EXECUTABLE,
            "extra_args": shlex.split(os.getenv("SOURCEKIT_BUILD_ARGS", "")),
            "language_id": os.getenv("SOURCEKIT_LANGUAGE_ID") or DEFAULT_LANGUAGE_ID,
            "request_timeout_seconds": _optional_float(
                "SOURCEKIT_REQUEST_TIMEOUT", os.getenv("SOURCEKIT_REQUEST_TIMEOUT")
            ),
        }
        settle = _optional_float(
            "SOURCEKIT_DIAGNOSTICS_SETTLE", os.getenv("SOURCEKIT_DIAGNOSTICS_SETTLE")
        )
        if settle is not None:
            values["diagnostics_settle_seconds"] = settle

        values.update({key: value for key, value in overrides.items() if value is not None})
        config = cls(**values)
        config.validate()
        return config

    def validate(self) -> None:
        if not self.executable:
            raise ConfigurationError("Language server executable is not configured")
        if not Path(self.workspace_root).is_dir():
            raise ConfigurationError(f"Workspace root is not a directory: {self.workspace_root}")
        if self.request_timeout_seconds is not None and self.request_timeout_seconds <= 0:
            raise ConfigurationError("request_timeout_seconds must be positive")
        if self.diagnostics_settle_seconds < 0:
            raise ConfigurationError("diagnostics_settle_seconds must not be negative")

    @property
    def command(self) -> List[str]:
        return [self.executable, *self.extra_args]

    def server_config(self) -> LanguageServerConfig:
        return LanguageServerConfig(
            command=self.command,
            initialization_options=dict(self.initialization_options),
            language_id=self.language_id,
            timeout_seconds=self.request_timeout_seconds,
        )

    def build_settings(self) -> Dict[str, Any]:
        return {
            "lspPath": self.executable,
            "buildArgs": list(self.extra_args),
            "workspaceRoot": self.workspace_root,
            "languageId": self.language_id,
            "requestTimeoutSeconds": self.request_timeout_seconds,
        }
