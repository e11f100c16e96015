import math
from dataclasses import dataclass, field

import numpy as np

from asciicells.engine import RGB
from asciicells.errors import ConfigurationError
from asciicells.sampling import round_half_up

KMEANS_ITERATIONS = 10


@dataclass(frozen=True)
class Palette:
    """Ordered set of unique colours with an RGB -> index map."""

    colours: tuple[RGB, ...]
    _index: dict[RGB, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_index", {c: i for i, c in enumerate(self.colours)})
        if len(self._index) != len(self.colours):
            raise ValueError("Palette colours must be unique")

    @classmethod
    def from_colours(cls, colours) -> "Palette":
        arr = np.asarray(colours, dtype=np.int64).reshape(-1, 3)
        unique = dict.fromkeys(tuple(int(v) for v in row) for row in arr)
        return cls(colours=tuple(unique))

    def __len__(self) -> int:
        return len(self.colours)

    def index(self, colour: RGB) -> int:
        return self._index[tuple(colour)]

    def as_array(self) -> np.ndarray:
        return np.array(self.colours, dtype=np.float64).reshape(-1, 3)


class LcgSeeder:
    """Pick k-means seed indices with a 31-bit linear congruential generator.

    Stands in for ``np.random.Generator`` wherever k-means takes an ``rng``.
    The state starts at ``seed``, or at the number of observations when no
    seed is given, and is restarted on every call, so one seeder can be
    shared across images and palettes. Each step is computed in IEEE double
    precision and masked to 31 bits, so any implementation using doubles
    picks the same indices. Indices already picked are skipped.
    """

    MULTIPLIER = 1103515245
    INCREMENT = 12345
    MASK = 0x7FFFFFFF

    def __init__(self, seed: int | None = None):
        self.seed = seed

    def _states(self, n: int):
        state = self.seed if self.seed is not None else n
        while True:
            state = int(float(state) * self.MULTIPLIER + self.INCREMENT) & self.MASK
            yield state

    def choice(self, n: int, size: int, replace: bool = False) -> np.ndarray:
        if replace:
            raise ValueError("LcgSeeder only samples without replacement")
        if size > n:
            raise ValueError(f"Cannot pick {size} distinct indices from {n}")
        picked: dict[int, None] = {}
        for state in self._states(n):
            if len(picked) == size:
                break
            idx = math.floor(state / self.MASK * n)
            # state == MASK maps one past the end
            if idx < n and idx not in picked:
                picked[idx] = None
        return np.fromiter(picked, dtype=np.intp, count=size)


def _squared_distances(points: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    diff = points[:, np.newaxis, :] - centroids[np.newaxis, :, :]
    return (diff * diff).sum(axis=2)


def nearest(colours: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """Index of the nearest palette entry (Euclidean RGB) for each colour; ties go to the first entry."""
    colours = np.asarray(colours, dtype=np.float64)
    shape = colours.shape[:-1]
    flat = colours.reshape(-1, 3)
    if len(flat) == 0:
        return np.zeros(shape, dtype=np.intp)
    return np.argmin(_squared_distances(flat, np.asarray(palette, dtype=np.float64)), axis=1).reshape(shape)


def unique_colours(observations: np.ndarray) -> np.ndarray:
    """Distinct rows of an (n, 3) array in first-seen order."""
    if len(observations) == 0:
        return observations
    _, first = np.unique(observations, axis=0, return_index=True)
    return observations[np.sort(first)]


def kmeans(
    observations,
    k: int,
    rng: np.random.Generator | LcgSeeder | None = None,
    iterations: int = KMEANS_ITERATIONS,
) -> np.ndarray:
    """Cluster RGB observations into at most k centroids.

    When there are no more distinct colours than clusters the distinct colours
    are returned as-is. Otherwise centroids are seeded by sampling observations
    without replacement from ``rng`` and refined for a fixed number of rounds.
    ``None`` uses an unseeded LcgSeeder, which is deterministic for a given
    input; a numpy Generator is reproducible only within one numpy release.

    Returns a (m, 3) uint8 array with m <= k.
    """
    if isinstance(k, bool) or not isinstance(k, int) or k < 1:
        raise ConfigurationError(f"Cluster count must be a positive integer, got {k!r}")
    obs = np.asarray(observations, dtype=np.float64).reshape(-1, 3)

    distinct = unique_colours(obs)
    if len(distinct) <= k:
        return distinct.astype(np.uint8)

    if rng is None:
        rng = LcgSeeder()
    seeds = rng.choice(len(obs), size=k, replace=False)
    centroids = obs[seeds].copy()

    # Fixed number of rounds, no convergence check
    for _ in range(iterations):
        labels = np.argmin(_squared_distances(obs, centroids), axis=1)
        for i in range(k):
            members = obs[labels == i]
            # Empty clusters keep their previous centroid
            if len(members):
                centroids[i] = round_half_up(members.sum(axis=0) / len(members))

    return centroids.clip(0, 255).astype(np.uint8)


def quantize(observations, k: int, rng: np.random.Generator | LcgSeeder | None = None) -> Palette:
    return Palette.from_colours(kmeans(observations, k, rng=rng))
