"""Configuration management for the planctl application."""
import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from planctl.errors import ConfigurationError

# Load environment variables from .env file if it exists
load_dotenv()


class Config:
    """Application configuration with sensible defaults."""

    # Directories
    RUNS_DIR: str = os.getenv("PLANCTL_RUNS_DIR", "./runs")
    GENERATED_DIR: str = os.getenv("PLANCTL_GENERATED_DIR", "generated")
    ANSIBLE_DIR: str = os.getenv("PLANCTL_ANSIBLE_DIR", "ansible")
    DIAGNOSTICS_DIR: str = os.getenv("PLANCTL_DIAGNOSTICS_DIR", "")

    # Console output
    OUTPUT_FORMAT: str = os.getenv("PLANCTL_OUTPUT_FORMAT", "simple")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


class OutputFormat(str, Enum):
    """Console output formats."""
    RAW = 'raw'
    SIMPLE = 'simple'


class ExecutorOptions(BaseModel):
    """Options used to configure the executor.

    Invalid values are reported as ConfigurationError when the options
    are created, before any task runs.
    """
    generated_assets_directory: str = Field(
        default="",
        description="Location where generated assets (certificates, kubeconfig) are stored"
    )
    output_format: OutputFormat = Field(
        default=OutputFormat.SIMPLE,
        description="Console output format (raw or simple)"
    )
    verbose: bool = Field(default=False, description="Verbose output from the executor")
    runs_directory: str = Field(
        default="./runs",
        description="Where information about each run is kept"
    )
    diagnostics_directory: str = Field(
        default="",
        description="Where diagnostics information about the cluster is dumped"
    )
    dry_run: bool = Field(default=False, description="Do not run any task")
    ansible_directory: str = Field(default="ansible", description="Location of the playbooks")

    model_config = {"extra": "forbid", "validate_default": True}

    @field_validator('output_format', mode='before')
    @classmethod
    def normalize_output_format(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('runs_directory')
    @classmethod
    def default_runs_directory(cls, v: str) -> str:
        return v or "./runs"

    @field_validator('diagnostics_directory')
    @classmethod
    def default_diagnostics_directory(cls, v: str) -> str:
        if v:
            return v
        return str(Path(os.getcwd()) / "diagnostics")

    @classmethod
    def create(cls, require_generated_assets: bool = True, **kwargs) -> 'ExecutorOptions':
        """Build and validate executor options.

        Args:
            require_generated_assets: Whether the generated assets directory must be set
            **kwargs: Option values

        Returns:
            ExecutorOptions

        Raises:
            ConfigurationError: If any option is invalid
        """
        try:
            options = cls(**kwargs)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid executor options: {e}") from e
        if require_generated_assets and not options.generated_assets_directory:
            raise ConfigurationError("generated_assets_directory option cannot be empty")
        return options

    @classmethod
    def from_config(cls, require_generated_assets: bool = True, **overrides) -> 'ExecutorOptions':
        """Build executor options from Config defaults and explicit overrides."""
        values = {
            "generated_assets_directory": Config.GENERATED_DIR,
            "output_format": Config.OUTPUT_FORMAT,
            "runs_directory": Config.RUNS_DIR,
            "diagnostics_directory": Config.DIAGNOSTICS_DIR,
            "ansible_directory": Config.ANSIBLE_DIR,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.create(require_generated_assets=require_generated_assets, **values)

    @property
    def certs_directory(self) -> str:
        return os.path.join(self.generated_assets_directory, "keys")
