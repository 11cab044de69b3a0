"""genetic_algorithm.py

Algoritmo genético para encontrar uma rota barata de um navio numa grade 2D
com obstáculos. O indivíduo é uma sequência de tamanho fixo de movimentos
(0=direita, 1=esquerda, 2=baixo, 3=cima); a rota é obtida "decodificando" os
movimentos a partir do ponto de partida, e o fitness é o inverso do custo da
rota (comprimento euclidiano + penalidade por ficar parado/voltar atrás).

O motor é deliberadamente simples: seleção por torneio, crossover de ponto
único e mutação uniforme por gene, com substituição geracional completa. O
melhor indivíduo já visto é guardado à parte (elitismo implícito).
"""
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

# usar o Generator do numpy para RNG reproduzível (um gerador por execução)
from numpy.random import default_rng

from shiproute.grid import (
	ConfigurationError,
	Coordinate,
	GridEnvironment,
	MOVE_COUNT,
	MOVE_OFFSETS,
)


# parâmetros padrão do motor evolutivo
GENOTYPE_LENGTH = 100
POPULATION_SIZE = 200
MUTATION_RATE = 0.2
CROSSOVER_RATE = 0.3
GENERATION_LIMIT = 100
TOURNAMENT_SIZE = 3

# custo extra por ponto parado ou revisitado imediatamente
BACKTRACK_PENALTY = 500.0

GENE_DTYPE = np.int8

# limite de entradas do cache de fitness (as mais antigas saem primeiro)
FITNESS_CACHE_LIMIT = 1000

SELECTION_SCHEMES = ('tournament', 'roulette')


def decode(genes: Sequence[int], environment: GridEnvironment) -> List[Coordinate]:
	"""Converte a sequência de movimentos numa lista de coordenadas.

	Cada gene move o navio uma célula; se a célula de destino estiver fora da
	grade ou for um obstáculo, o navio fica parado e a posição atual é
	repetida; o mesmo vale para genes fora de {0, 1, 2, 3}. No fim o ponto
	de chegada é sempre acrescentado, mesmo que a rota não o alcance: o
	"salto" final entra no custo e não deve ser corrigido aqui.
	O resultado tem sempre len(genes) + 2 pontos.
	"""
	route = [environment.start]
	cx, cy = environment.start
	for gene in genes:
		gene = int(gene)
		if 0 <= gene < MOVE_COUNT:
			dx, dy = MOVE_OFFSETS[gene]
			candidate = Coordinate(cx + int(dx), cy + int(dy))
		else:
			# gene fora de {0..3}: o navio fica parado
			candidate = None
		if candidate is not None and environment.is_valid(candidate):
			route.append(candidate)
			cx, cy = candidate
		else:
			route.append(Coordinate(cx, cy))
	route.append(environment.end)
	return route


def path_distance(path: Sequence[Coordinate]) -> float:
	"""Soma das distâncias euclidianas entre pontos consecutivos."""
	pts = np.asarray(path, dtype=float)
	if len(pts) < 2:
		return 0.0
	seg = np.diff(pts, axis=0)
	return float(np.hypot(seg[:, 0], seg[:, 1]).sum())


def stalled_points(path: Sequence[Coordinate]) -> int:
	"""Conta os pontos interiores iguais ao anterior ou ao seguinte.

	Uma parada isolada (p[i] == p[i-1]) conta duas vezes: o índice i por
	ser igual ao anterior e o índice i-1 por ser igual ao seguinte.
	Comportamento conhecido, mantido de propósito na forma do custo.
	"""
	pts = np.asarray(path, dtype=int)
	if len(pts) < 3:
		return 0
	mid = pts[1:-1]
	same_prev = np.all(mid == pts[:-2], axis=1)
	same_next = np.all(mid == pts[2:], axis=1)
	return int(np.count_nonzero(same_prev | same_next))


def backtracking_penalty(path: Sequence[Coordinate]) -> float:
	return BACKTRACK_PENALTY * stalled_points(path)


def fitness_of(path: Sequence[Coordinate]) -> float:
	"""Fitness a maximizar: 1 / (distância + penalidade).

	Como partida e chegada são distintas a distância é sempre positiva, logo
	não há divisão por zero.
	"""
	return 1.0 / (path_distance(path) + backtracking_penalty(path))


def reaches_end(path: Sequence[Coordinate], environment: GridEnvironment) -> bool:
	"""Verdadeiro se a rota chega ao destino por movimentos válidos.

	Ou seja, se o último ponto antes do salto final já é o ponto de chegada.
	"""
	return len(path) >= 2 and Coordinate(*path[-2]) == environment.end


class Population:
	"""Conjunto de tamanho fixo de genótipos com fitness em cache.

	`genes` tem forma (n, L); `fitness[i]` é NaN enquanto o indivíduo i não
	foi avaliado. Alterar os genes de um indivíduo invalida o seu fitness.
	"""

	def __init__(self, genes: np.ndarray):
		self.genes = np.array(genes, dtype=GENE_DTYPE, ndmin=2)
		self.fitness = np.full(len(self.genes), np.nan, dtype=float)

	@classmethod
	def random(cls, size: int, length: int, rng: np.random.Generator) -> "Population":
		# genes uniformes em {0, 1, 2, 3}
		return cls(rng.integers(0, MOVE_COUNT, size=(size, length)))

	def __len__(self) -> int:
		return len(self.genes)

	@property
	def genotype_length(self) -> int:
		return self.genes.shape[1]

	def genotype(self, index: int) -> np.ndarray:
		return self.genes[index].copy()

	def set_genotype(self, index: int, genes: Sequence[int]):
		self.genes[index] = np.asarray(genes, dtype=GENE_DTYPE)
		self.fitness[index] = np.nan

	def pending(self) -> np.ndarray:
		"""Índices dos indivíduos sem fitness calculado."""
		return np.flatnonzero(np.isnan(self.fitness))

	def evaluate(self, fitness_fn: Callable[[np.ndarray], float]) -> int:
		"""Avalia apenas os indivíduos pendentes; retorna quantos foram avaliados."""
		idxs = self.pending()
		for i in idxs:
			self.fitness[i] = fitness_fn(self.genes[i])
		return len(idxs)

	def best_index(self) -> int:
		return int(np.nanargmax(self.fitness))


def tournament_selection(fitness: np.ndarray, tournament_size: int, rng: np.random.Generator) -> int:
	"""Retorna o índice do vencedor de um torneio (com reposição).

	Empates ficam com o primeiro competidor sorteado, então uma população com
	fitness todos iguais vira uma escolha uniforme.
	"""
	contestants = rng.integers(0, len(fitness), size=tournament_size)
	best = int(contestants[0])
	for c in contestants:
		if fitness[int(c)] > fitness[best]:
			best = int(c)
	return best


def roulette_selection(fitness: np.ndarray, rng: np.random.Generator) -> int:
	"""Seleção proporcional ao fitness (roleta).

	Desloca os valores quando há fitness negativo; se o peso total for zero
	cai para uma escolha uniforme.
	"""
	weights = np.asarray(fitness, dtype=float)
	low = weights.min()
	if low < 0:
		weights = weights - low
	total = weights.sum()
	if total <= 0 or not np.isfinite(total):
		return int(rng.integers(0, len(weights)))
	return int(rng.choice(len(weights), p=weights / total))


def single_point_crossover(parent_a: np.ndarray,
						   parent_b: np.ndarray,
						   rate: float,
						   rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
	"""Com probabilidade `rate` troca os sufixos a partir de um corte em [1, L-1].

	Os pais nunca são alterados; sem crossover os filhos são cópias.
	"""
	child_a = np.array(parent_a, copy=True)
	child_b = np.array(parent_b, copy=True)
	if len(child_a) < 2 or rng.random() >= rate:
		return child_a, child_b
	cut = int(rng.integers(1, len(child_a)))
	child_a[cut:] = parent_b[cut:]
	child_b[cut:] = parent_a[cut:]
	return child_a, child_b


def uniform_mutation(genes: np.ndarray, rate: float, rng: np.random.Generator) -> np.ndarray:
	# cada gene é sorteado de novo com probabilidade `rate` (pode repetir o valor)
	mutated = np.array(genes, copy=True)
	mask = rng.random(mutated.shape) < rate
	if mask.any():
		mutated[mask] = rng.integers(0, MOVE_COUNT, size=int(mask.sum()))
	return mutated


class EngineState(Enum):
	INITIALIZING = 'initializing'
	EVALUATING = 'evaluating'
	EVOLVING = 'evolving'
	TERMINATED = 'terminated'


class GenerationStats(NamedTuple):
	generation: int
	best_fitness: float
	mean_fitness: float
	best_ever_fitness: float


class GeneticAlgorithm:
	def __init__(self,
				 environment: GridEnvironment,
				 genotype_length: int = GENOTYPE_LENGTH,
				 population_size: int = POPULATION_SIZE,
				 mutation_rate: float = MUTATION_RATE,
				 crossover_rate: float = CROSSOVER_RATE,
				 generation_limit: int = GENERATION_LIMIT,
				 tournament_size: int = TOURNAMENT_SIZE,
				 selection: str = 'tournament',
				 seed=None):
		self.state = EngineState.INITIALIZING
		self.environment = environment
		self.genotype_length = int(genotype_length)
		self.population_size = int(population_size)
		self.mutation_rate = float(mutation_rate)
		self.crossover_rate = float(crossover_rate)
		self.generation_limit = int(generation_limit)
		self.tournament_size = int(tournament_size)
		self.selection = selection
		self._validate()

		# gerador aleatório (reprodutível usando `seed`)
		self.rng = default_rng(seed)

		self.population = self._init_population()
		self.generation = 0
		self.evaluations = 0
		self.history: List[GenerationStats] = []
		self.best_genes: Optional[np.ndarray] = None
		self.best_fitness = 0.0

		# fitness por conteúdo do genótipo, limitado a `_fitness_cache_limit` entradas
		self._fitness_cache: Dict[bytes, float] = {}
		self._fitness_cache_limit = FITNESS_CACHE_LIMIT

	def _validate(self):
		if not isinstance(self.environment, GridEnvironment):
			raise ConfigurationError("environment must be a GridEnvironment")
		if self.genotype_length < 1:
			raise ConfigurationError(f"genotype_length must be >= 1, got {self.genotype_length}")
		if self.population_size < 2:
			raise ConfigurationError(f"population_size must be >= 2, got {self.population_size}")
		if self.generation_limit < 1:
			raise ConfigurationError(f"generation_limit must be >= 1, got {self.generation_limit}")
		for name in ('mutation_rate', 'crossover_rate'):
			rate = getattr(self, name)
			if not 0.0 <= rate <= 1.0:
				raise ConfigurationError(f"{name} must be within [0, 1], got {rate}")
		if not 1 <= self.tournament_size <= self.population_size:
			raise ConfigurationError(
				f"tournament_size must be within [1, population_size], got {self.tournament_size}")
		if self.selection not in SELECTION_SCHEMES:
			raise ConfigurationError(f"unknown selection scheme {self.selection!r}, expected one of {SELECTION_SCHEMES}")

	def _init_population(self) -> Population:
		return Population.random(self.population_size, self.genotype_length, self.rng)

	def decode(self, genes: Sequence[int]) -> List[Coordinate]:
		return decode(genes, self.environment)

	def evaluate(self, genes: np.ndarray) -> float:
		key = np.asarray(genes, dtype=GENE_DTYPE).tobytes()
		cached = self._fitness_cache.get(key)
		if cached is None:
			cached = fitness_of(self.decode(genes))
			self._update_fitness_cache(key, cached)
			self.evaluations += 1
		return cached

	def _update_fitness_cache(self, key: bytes, value: float):
		if len(self._fitness_cache) >= self._fitness_cache_limit:
			# remove a entrada mais antiga (FIFO)
			del self._fitness_cache[next(iter(self._fitness_cache))]
		self._fitness_cache[key] = value

	def _evaluate_population(self) -> np.ndarray:
		"""Avalia os indivíduos pendentes e atualiza o melhor já visto."""
		self.state = EngineState.EVALUATING
		self.population.evaluate(self.evaluate)
		fitness = self.population.fitness

		idx_best = self.population.best_index()
		if self.best_genes is None or fitness[idx_best] > self.best_fitness:
			self.best_fitness = float(fitness[idx_best])
			self.best_genes = self.population.genotype(idx_best)

		self.history.append(GenerationStats(
			generation=self.generation,
			best_fitness=float(fitness[idx_best]),
			mean_fitness=float(fitness.mean()),
			best_ever_fitness=self.best_fitness,
		))
		return fitness

	def _select(self, fitness: np.ndarray) -> int:
		if self.selection == 'roulette':
			return roulette_selection(fitness, self.rng)
		return tournament_selection(fitness, self.tournament_size, self.rng)

	def select(self, population: Population) -> np.ndarray:
		"""Escolhe um pai e devolve uma cópia do seu genótipo."""
		return population.genotype(self._select(population.fitness))

	def _crossover(self, parent_a: np.ndarray, parent_b: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
		return single_point_crossover(parent_a, parent_b, self.crossover_rate, self.rng)

	def _mutate(self, individual: np.ndarray) -> np.ndarray:
		return uniform_mutation(individual, self.mutation_rate, self.rng)

	def _breed(self) -> Population:
		"""Gera a próxima população (mesmo tamanho) por seleção, crossover e mutação."""
		self.state = EngineState.EVOLVING
		new_genes = np.empty_like(self.population.genes)
		n = self.population_size
		i = 0
		while i < n:
			if n - i == 1:
				# tamanho ímpar: o último lugar recebe um indivíduo só mutado
				new_genes[i] = self._mutate(self.select(self.population))
				i += 1
				continue
			a = self.select(self.population)
			b = self.select(self.population)
			c1, c2 = self._crossover(a, b)
			new_genes[i] = self._mutate(c1)
			new_genes[i + 1] = self._mutate(c2)
			i += 2
		return Population(new_genes)

	def run(self,
			generations: Optional[int] = None,
			verbose: bool = False,
			on_generation=None) -> Tuple[np.ndarray, float]:
		"""Executa a evolução e retorna (melhor genótipo, fitness).

		`generations` padrão é `generation_limit`; 0 apenas avalia a população
		inicial. `on_generation(gen, genes, fitness)` é chamado após cada
		avaliação com cópias da população.
		"""
		generations = self.generation_limit if generations is None else int(generations)
		if generations < 0:
			raise ConfigurationError(f"generations must be >= 0, got {generations}")

		report_every = max(1, generations // 10)
		last = self.generation + generations
		for gen in range(generations + 1):
			if gen > 0:
				self.population = self._breed()
				self.generation += 1
			elif self.history:
				# população atual já avaliada numa execução anterior
				continue
			fitness = self._evaluate_population()

			if on_generation is not None:
				on_generation(self.generation, self.population.genes.copy(), fitness.copy())

			if verbose and (gen % report_every == 0 or self.generation == last):
				print(f"Generation {self.generation:4d}: best fitness = {self.best_fitness:.6f}")

		self.state = EngineState.TERMINATED
		return self.best_genes.copy(), self.best_fitness

	@property
	def best_path(self) -> Optional[List[Coordinate]]:
		if self.best_genes is None:
			return None
		return self.decode(self.best_genes)
