from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .config import ParticleConfig
from .wind_field import WindField


@dataclass(frozen=True)
class Bounds:
    west: float
    south: float
    east: float
    north: float

    def contains(self, lon: float, lat: float) -> bool:
        return self.west <= lon <= self.east and self.south <= lat <= self.north


@dataclass
class Particle:
    lon: float
    lat: float
    age: int


@dataclass(frozen=True)
class ParticleMove:
    prev_lon: float
    prev_lat: float
    lon: float
    lat: float


def tail_segment(
    prev_xy: Tuple[float, float],
    curr_xy: Tuple[float, float],
    tail_scale: float = 2.5,
) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """
    Screen-space trail for one particle: from curr - (curr - prev) * tail_scale
    to curr. Purely visual, the simulation never reads it.
    """
    dx = curr_xy[0] - prev_xy[0]
    dy = curr_xy[1] - prev_xy[1]
    return (curr_xy[0] - dx * tail_scale, curr_xy[1] - dy * tail_scale), curr_xy


class ParticleAdvector:
    """
    Fixed-size particle pool advected through a WindField once per tick.
    Displacements from the field are already in degrees per tick.
    """

    def __init__(self, cfg: Optional[ParticleConfig] = None):
        self.cfg = cfg or ParticleConfig()
        self.rng = np.random.default_rng(self.cfg.seed)
        self.particles: List[Particle] = []

    def _random_position(self, bounds: Bounds) -> Tuple[float, float]:
        lon = bounds.west + self.rng.random() * (bounds.east - bounds.west)
        lat = bounds.south + self.rng.random() * (bounds.north - bounds.south)
        return float(lon), float(lat)

    def _respawn(self, p: Particle, bounds: Bounds):
        p.lon, p.lat = self._random_position(bounds)
        p.age = 0

    def seed(self, bounds: Bounds):
        # staggered ages so the pool does not respawn all at once
        self.particles = []
        for _ in range(self.cfg.n_particles):
            lon, lat = self._random_position(bounds)
            age = int(self.rng.integers(0, self.cfg.max_age))
            self.particles.append(Particle(lon=lon, lat=lat, age=age))

    def clear(self):
        self.particles = []

    def trail(self, move: ParticleMove) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        return tail_segment((move.prev_lon, move.prev_lat), (move.lon, move.lat), self.cfg.tail_scale)

    def step(self, field: Optional[WindField], bounds: Bounds) -> List[ParticleMove]:
        """
        Advance every particle one tick. With no field (grid still loading)
        nothing moves and nothing is returned.
        """
        if field is None:
            return []

        moves = []
        for p in self.particles:
            p.age += 1
            if p.age > self.cfg.max_age:
                self._respawn(p, bounds)
                continue

            prev_lon, prev_lat = p.lon, p.lat
            u, v = field.get_wind(p.lon, p.lat)
            p.lon += u
            p.lat += v

            if not bounds.contains(p.lon, p.lat):
                self._respawn(p, bounds)
                continue

            moves.append(ParticleMove(prev_lon, prev_lat, p.lon, p.lat))
        return moves
