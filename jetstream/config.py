import math
from dataclasses import dataclass


@dataclass
class FeedConfig:
    origin: str = "https://a.windbornesystems.com/treasure"
    timeout_s: float = 10.0        # per hour request
    max_workers: int = 8           # concurrent hour fetches

    def __post_init__(self):
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive, got {self.timeout_s}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    def hour_url(self, hour: str) -> str:
        return f"{self.origin.rstrip('/')}/{hour}.json"


@dataclass
class WindConfig:
    api_url: str = "https://api.open-meteo.com/v1/forecast"
    pressure_level_hpa: int = 50   # ~20-21 km
    scale: float = 0.01            # m/s -> degrees per animation tick
    rows: int = 3
    cols: int = 5
    min_fill_fraction: float = 0.6 # below this the grid is logged as incomplete
    lat_clamp: float = 60.0        # keep sampling away from the poles
    fallback_lat: float = 30.0     # used when the viewport is degenerate
    fallback_lon: float = -20.0
    timeout_s: float = 10.0
    max_workers: int = 8

    def __post_init__(self):
        if not math.isfinite(self.scale) or self.scale <= 0:
            raise ValueError(f"scale must be a positive finite number, got {self.scale}")
        if self.rows < 1 or self.cols < 1:
            raise ValueError(f"grid must be at least 1x1, got {self.rows}x{self.cols}")
        if not 0.0 <= self.min_fill_fraction <= 1.0:
            raise ValueError(f"min_fill_fraction must be in [0,1], got {self.min_fill_fraction}")
        if not 0.0 < self.lat_clamp <= 90.0:
            raise ValueError(f"lat_clamp must be in (0,90], got {self.lat_clamp}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    @property
    def speed_key(self) -> str:
        return f"wind_speed_{self.pressure_level_hpa}hPa"

    @property
    def direction_key(self) -> str:
        return f"wind_direction_{self.pressure_level_hpa}hPa"


@dataclass
class ParticleConfig:
    n_particles: int = 900         # pool size
    max_age: int = 160             # ticks before respawn
    tail_scale: float = 2.5        # visual trail exaggeration (renderer only)
    seed: int | None = None        # fixed seed for reproducible runs

    def __post_init__(self):
        if self.n_particles < 0:
            raise ValueError(f"n_particles must be >= 0, got {self.n_particles}")
        if self.max_age < 1:
            raise ValueError(f"max_age must be >= 1, got {self.max_age}")
        if self.tail_scale < 0:
            raise ValueError(f"tail_scale must be >= 0, got {self.tail_scale}")
