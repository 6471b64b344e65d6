from __future__ import annotations

from dataclasses import dataclass, field

from PIL import Image

from .errors import CompressionError, ConfigError

ORIGINAL_QUALITY = "original"
AUTO_FORMAT = "auto"
SUPPORTED_OUTPUT_FORMATS = ("image/jpeg", "image/webp", "image/png")
LADDER_MODES = ("search", "probe")


@dataclass(frozen=True)
class CompressionOptions:
    target_size_kb: float = 50
    max_width: int = 4096
    max_height: int = 4096
    min_quality: float = 0.1
    max_quality: float = 0.92
    quality_tolerance: float = 0.1
    output_format: str = AUTO_FORMAT
    sharpen: bool = True
    ladder_mode: str = "search"
    min_dimension: int = 200
    ladder_floor: int = 150
    fallback_quality: float = 0.5

    def __post_init__(self) -> None:
        if self.target_size_kb <= 0:
            raise ConfigError(f"target_size_kb must be positive, got {self.target_size_kb}")
        for name in ("max_width", "max_height", "min_dimension", "ladder_floor"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        bound = min(self.max_width, self.max_height)
        for name in ("min_dimension", "ladder_floor"):
            value = getattr(self, name)
            if value > bound:
                raise ConfigError(f"{name} ({value}) must not exceed max_width/max_height ({bound})")
        for name in ("min_quality", "max_quality", "fallback_quality"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ConfigError(f"{name} must be within [0, 1], got {value}")
        if self.min_quality >= self.max_quality:
            raise ConfigError(
                f"min_quality ({self.min_quality}) must be lower than max_quality ({self.max_quality})"
            )
        if not 0 <= self.quality_tolerance < 1:
            raise ConfigError(f"quality_tolerance must be within [0, 1), got {self.quality_tolerance}")
        if self.output_format != AUTO_FORMAT and self.output_format not in SUPPORTED_OUTPUT_FORMATS:
            raise ConfigError(f"unsupported output format: {self.output_format}")
        if self.ladder_mode not in LADDER_MODES:
            raise ConfigError(f"ladder_mode must be one of {LADDER_MODES}, got {self.ladder_mode!r}")

    @property
    def target_bytes(self) -> int:
        return int(self.target_size_kb * 1024)

    @property
    def low_quality(self) -> float:
        """Fixed quality for probes and the last resort, kept inside the bracket."""
        return max(self.min_quality, min(self.max_quality, self.fallback_quality))


@dataclass
class SourceImage:
    """Decoded input owned by a single compression run.

    ``image`` is only ever read; resampling produces new images.
    """

    image: Image.Image
    data: bytes
    original_format: str

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def original_size(self) -> int:
        return len(self.data)

    def close(self) -> None:
        self.image.close()

    def __enter__(self) -> SourceImage:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass(frozen=True)
class Candidate:
    width: int
    height: int
    quality: float
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class CompressionResult:
    data: bytes = field(repr=False)
    final_width: int
    final_height: int
    quality_used: float | str
    output_format: str
    original_size_kb: float
    compressed_size_kb: float
    compression_ratio: float
    original_width: int
    original_height: int
    target_size_kb: float

    @property
    def is_original(self) -> bool:
        return self.quality_used == ORIGINAL_QUALITY

    @property
    def target_met(self) -> bool:
        return self.compressed_size_kb <= self.target_size_kb


@dataclass(frozen=True)
class BatchItem:
    data: bytes = field(repr=False)
    mime_type: str
    name: str


@dataclass(frozen=True)
class ItemResult:
    name: str
    result: CompressionResult | None = None
    error: CompressionError | None = None

    @property
    def success(self) -> bool:
        return self.error is None and self.result is not None

    @property
    def message(self) -> str:
        if self.error is not None:
            return str(self.error)
        if self.result is not None and self.result.is_original:
            return "kept original"
        return "ok"
