"""Configuration schema using Pydantic.

Single data model and defaults for evalbridge, persisted to ~/.evalbridge/config.json.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

ENV_PREFIX = "EVALBRIDGE_"


class ConnectionConfig(BaseModel):
    """Where the interpreter's evaluation server listens."""
    host: str = "127.0.0.1"
    port: int = Field(default=10011, ge=1, le=65535)
    connect_timeout_seconds: float = 5.0


class StagingConfig(BaseModel):
    """Scratch-file staging for code that should not be inlined."""
    directory: str | None = None  # None -> system temp dir
    prefix: str = "evalbridge-"
    suffix: str = ".jl"
    inline_max_chars: int = 4096  # Longer or multi-line selections are staged


class DiagnosticsConfig(BaseModel):
    """How interpreter-reported failures are presented."""
    show_diagnostics: bool = True  # False -> terse transient notification only
    surface_name: str = "*evalbridge-error*"


class BootstrapConfig(BaseModel):
    """Starting the evaluation server inside a freshly launched REPL."""
    prompt_pattern: str = r"julia> $"
    timeout_seconds: float = 5.0
    server_command: str = "using EvalBridgeServer; EvalBridgeServer.start({port})"


class Config(BaseSettings):
    """Root configuration for evalbridge."""
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    staging: StagingConfig = Field(default_factory=StagingConfig)
    diagnostics: DiagnosticsConfig = Field(default_factory=DiagnosticsConfig)
    bootstrap: BootstrapConfig = Field(default_factory=BootstrapConfig)

    @property
    def address(self) -> tuple[str, int]:
        return self.connection.host, self.connection.port

    model_config = ConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__"
    )
