"""grid.py

Descrição imutável do "mar" onde o navio procura a rota: uma grade quadrada
de lado `size`, um ponto de partida, um ponto de chegada e um conjunto de
células bloqueadas (obstáculos). Também contém o gerador aleatório de
obstáculos usado para montar o ambiente de uma execução.
"""
from dataclasses import dataclass, field
from enum import IntEnum
from typing import FrozenSet, Iterable, NamedTuple, Optional

import numpy as np
from numpy.random import default_rng


# parâmetros padrão da grade
GRID_SIZE = 20
OBSTACLE_COUNT = 30


class ConfigurationError(ValueError):
	"""Parâmetros de configuração inválidos (grade, taxas, tamanhos)."""


class Coordinate(NamedTuple):
	x: int
	y: int


class Move(IntEnum):
	RIGHT = 0
	LEFT = 1
	DOWN = 2
	UP = 3


# deslocamento (dx, dy) de cada direção, indexado pelo valor do gene
MOVE_OFFSETS = np.array([
	[1, 0],    # direita
	[-1, 0],   # esquerda
	[0, 1],    # baixo
	[0, -1],   # cima
], dtype=int)

MOVE_COUNT = len(Move)


def step(c: Coordinate, move: int) -> Coordinate:
	"""Aplica o deslocamento do gene `move` à coordenada `c`."""
	dx, dy = MOVE_OFFSETS[int(move)]
	return Coordinate(c.x + int(dx), c.y + int(dy))


def as_coordinate(value, name: str = 'coordinate') -> Coordinate:
	"""Converte um par (x, y) em `Coordinate`, rejeitando formatos inválidos."""
	try:
		x, y = value
		return Coordinate(int(x), int(y))
	except (TypeError, ValueError):
		raise ConfigurationError(f"{name} must be an (x, y) integer pair, got {value!r}") from None


@dataclass(frozen=True)
class GridEnvironment:
	size: int = GRID_SIZE
	start: Optional[Coordinate] = None
	end: Optional[Coordinate] = None
	obstacles: FrozenSet[Coordinate] = field(default_factory=frozenset)

	def __post_init__(self):
		# normaliza tipos (aceita tuplas simples e qualquer iterável)
		object.__setattr__(self, 'size', int(self.size))
		if self.start is None:
			object.__setattr__(self, 'start', (0, 0))
		if self.end is None:
			object.__setattr__(self, 'end', (self.size - 1, self.size - 1))
		object.__setattr__(self, 'start', as_coordinate(self.start, 'start'))
		object.__setattr__(self, 'end', as_coordinate(self.end, 'end'))
		object.__setattr__(self, 'obstacles', frozenset(as_coordinate(o, 'obstacle') for o in self.obstacles))

		if self.size < 2:
			raise ConfigurationError(f"grid size must be at least 2, got {self.size}")
		if self.size * self.size < len(self.obstacles) + 2:
			raise ConfigurationError(
				f"grid {self.size}x{self.size} has no room for {len(self.obstacles)} obstacles plus start and end")
		for name, c in (('start', self.start), ('end', self.end)):
			if not self.in_bounds(c):
				raise ConfigurationError(f"{name} {tuple(c)} is outside the grid")
			if c in self.obstacles:
				raise ConfigurationError(f"{name} {tuple(c)} is an obstacle")
		if self.start == self.end:
			raise ConfigurationError("start and end must be distinct")
		outside = [o for o in self.obstacles if not self.in_bounds(o)]
		if outside:
			raise ConfigurationError(f"obstacles outside the grid: {sorted(outside)}")

	@property
	def obstacle_count(self) -> int:
		return len(self.obstacles)

	def in_bounds(self, c: Coordinate) -> bool:
		return 0 <= c[0] < self.size and 0 <= c[1] < self.size

	def is_valid(self, c: Coordinate) -> bool:
		"""Verdadeiro se `c` está dentro da grade e não é um obstáculo."""
		return self.in_bounds(c) and Coordinate(*c) not in self.obstacles

	@classmethod
	def random(cls,
			   size: int = GRID_SIZE,
			   obstacle_count: int = OBSTACLE_COUNT,
			   start: Optional[Iterable[int]] = None,
			   end: Optional[Iterable[int]] = None,
			   seed=None) -> "GridEnvironment":
		"""Cria um ambiente com `obstacle_count` obstáculos sorteados.

		Por padrão a partida fica em (0, 0) e a chegada no canto oposto.
		`seed` aceita um inteiro ou um `numpy.random.Generator`; sem seed o
		gerador é inicializado pela entropia do sistema (não reprodutível).
		"""
		size = int(size)
		start = as_coordinate(start, 'start') if start is not None else Coordinate(0, 0)
		end = as_coordinate(end, 'end') if end is not None else Coordinate(size - 1, size - 1)
		obstacles = generate_random_obstacles(size, obstacle_count, start, end, default_rng(seed))
		return cls(size=size, start=start, end=end, obstacles=obstacles)


def generate_random_obstacles(size: int,
							  count: int,
							  start: Coordinate,
							  end: Coordinate,
							  rng: np.random.Generator) -> FrozenSet[Coordinate]:
	"""Sorteia `count` células distintas, diferentes da partida e da chegada.

	Amostragem por rejeição: sorteia (x, y) até juntar células suficientes.
	"""
	size = int(size)
	count = int(count)
	if count < 0:
		raise ConfigurationError(f"obstacle count must be non-negative, got {count}")
	if size < 2 or size * size < count + 2:
		raise ConfigurationError(f"grid {size}x{size} has no room for {count} obstacles plus start and end")

	start = as_coordinate(start, 'start')
	end = as_coordinate(end, 'end')
	obstacles = set()
	while len(obstacles) < count:
		x, y = rng.integers(0, size, size=2)
		candidate = Coordinate(int(x), int(y))
		# evita colisão com os pontos de partida e chegada
		if candidate != start and candidate != end:
			obstacles.add(candidate)
	return frozenset(obstacles)
