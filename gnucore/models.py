"""Pydantic models and enums for gnucore.

Provides the validated configuration tree, the shared enums used across the
accounting components, and the ``SessionReport`` diagnostics record.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ConnectionRole(str, Enum):
    """Overlay role of a single connection."""

    ULTRAPEER_TO_LEAF = "ultrapeer_to_leaf"
    LEAF_TO_ULTRAPEER = "leaf_to_ultrapeer"
    ULTRAPEER_TO_ULTRAPEER = "ultrapeer_to_ultrapeer"
    LEGACY_UNROUTED = "legacy_unrouted"


class Direction(str, Enum):
    """Which side opened a connection."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class NodeRole(str, Enum):
    """Topology role of the local node."""

    LEAF = "leaf"
    ULTRAPEER_CANDIDATE = "ultrapeer_candidate"
    ULTRAPEER = "ultrapeer"


class EntryState(str, Enum):
    """Lifecycle of a cache entry."""

    PENDING = "pending"
    VERIFYING = "verifying"
    COMMITTED = "committed"
    EVICTED = "evicted"


class NetworkConfig(BaseModel):
    """Network configuration."""

    listen_port: int = Field(
        default=6346,
        ge=0,
        le=65535,
        description="Local listening port reported to diagnostics (0 = not bound)",
    )


class CacheConfig(BaseModel):
    """Capacities of the caches that sit on the network/disk boundary."""

    disk_cache_bytes: int = Field(
        default=4 * 1024 * 1024,
        ge=0,
        description="Write-behind disk cache capacity in bytes",
    )
    disk_cache_evict_pending: bool = Field(
        default=False,
        description="Evict oldest pending write-behind blocks when the disk cache is full",
    )
    disk_cache_auto_size: bool = Field(
        default=False,
        description="Size the disk cache from available memory instead of disk_cache_bytes",
    )
    disk_cache_auto_fraction: float = Field(
        default=0.02,
        gt=0.0,
        le=0.5,
        description="Fraction of available memory used when auto-sizing the disk cache",
    )
    disk_cache_min_bytes: int = Field(
        default=1024 * 1024,
        ge=0,
        description="Lower clamp for an auto-sized disk cache",
    )
    disk_cache_max_bytes: int = Field(
        default=256 * 1024 * 1024,
        ge=0,
        description="Upper clamp for an auto-sized disk cache",
    )
    creation_cache_entries: int = Field(
        default=512,
        ge=1,
        description="Maximum number of entries in the creation cache",
    )
    content_response_entries: int = Field(
        default=1024,
        ge=1,
        description="Maximum number of cached content-authority responses",
    )

    @model_validator(mode="after")
    def validate_bounds(self):
        """Ensure auto-sizing clamps are ordered."""
        if self.disk_cache_min_bytes > self.disk_cache_max_bytes:
            msg = "disk_cache_min_bytes cannot exceed disk_cache_max_bytes"
            raise ValueError(msg)
        return self


class BufferPoolConfig(BaseModel):
    """Byte buffer pool configuration."""

    min_buffer_bytes: int = Field(
        default=1024,
        ge=1,
        description="Smallest size class handed out by the pool",
    )
    max_idle_bytes: int = Field(
        default=8 * 1024 * 1024,
        ge=0,
        description="Idle bytes kept for reuse; released buffers beyond this are dropped",
    )
    zero_io_buffers: bool = Field(
        default=False,
        description="Treat general I/O buffers as sensitive and zero them on release",
    )


class TopologyConfig(BaseModel):
    """Ultrapeer promotion/demotion policy."""

    enable_promotion: bool = Field(
        default=True,
        description="Allow the node to promote itself to ultrapeer candidate",
    )
    ultrapeer_retry_window: float = Field(
        default=300.0,
        gt=0.0,
        description="Window in seconds over which failed ultrapeer connects are counted",
    )
    ultrapeer_max_failures: int = Field(
        default=5,
        ge=1,
        description="Failed outgoing ultrapeer connects within the window that force demotion",
    )


class AccountingConfig(BaseModel):
    """Counter accounting behaviour."""

    strict_counters: bool = Field(
        default=False,
        description="Raise on counter underflow instead of clamping at zero",
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    console_logging: bool = Field(
        default=True,
        description="Log to the console through Rich",
    )
    structured_logging: bool = Field(
        default=True,
        description="Write JSON records to the log file",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string for plain file output",
    )
    log_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Rotate the log file after this many bytes",
    )
    log_backup_count: int = Field(
        default=5,
        ge=0,
        description="Rotated log files to keep",
    )


class Config(BaseModel):
    """Main configuration model."""

    network: NetworkConfig = Field(
        default_factory=NetworkConfig,
        description="Network configuration",
    )
    cache: CacheConfig = Field(
        default_factory=CacheConfig,
        description="Cache configuration",
    )
    buffers: BufferPoolConfig = Field(
        default_factory=BufferPoolConfig,
        description="Byte buffer pool configuration",
    )
    topology: TopologyConfig = Field(
        default_factory=TopologyConfig,
        description="Topology role policy configuration",
    )
    accounting: AccountingConfig = Field(
        default_factory=AccountingConfig,
        description="Counter accounting configuration",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )


class SessionReport(BaseModel):
    """Point-in-time session diagnostics, captured field by field.

    Fields are read in declaration order. The record is best-effort
    consistent: components keep changing while it is captured.
    """

    current_uptime: float = Field(..., ge=0.0, description="Seconds since node start")
    port: int = Field(..., ge=0, le=65535, description="Listening port")
    is_guess_capable: bool
    can_receive_solicited: bool
    accepted_incoming_connection: bool
    ultrapeer_to_leaf_connections: int = Field(..., ge=0)
    leaf_to_ultrapeer_connections: int = Field(..., ge=0)
    ultrapeer_to_ultrapeer_connections: int = Field(..., ge=0)
    old_connections: int = Field(..., ge=0)
    waiting_sockets: int = Field(..., ge=0)
    waiting_downloads: int = Field(..., ge=0)
    individual_downloaders: int = Field(..., ge=0)
    pending_timeouts: int = Field(..., ge=0)
    content_responses_size: int = Field(..., ge=0)
    creation_cache_size: int = Field(..., ge=0)
    disk_controller_byte_cache_size: int = Field(..., ge=0)
    disk_controller_verifying_cache_size: int = Field(..., ge=0)
    disk_controller_queue_size: int = Field(..., ge=0)
    byte_buffer_cache_size: int = Field(..., ge=0)
