"""Runner para o algoritmo genético de `genetic_algorithm.py`.

Sorteia os obstáculos, executa a otimização e imprime o fitness da melhor
rota encontrada, junto com um mapa em texto. Com `--view` (requer pygame) a
melhor rota de cada geração é desenhada numa janela.
"""
import argparse
from typing import Optional, Sequence

try:
	import pygame
	PYGAME_AVAILABLE = True
except ImportError:
	PYGAME_AVAILABLE = False

from shiproute.genetic_algorithm import (
	CROSSOVER_RATE,
	GENERATION_LIMIT,
	GENOTYPE_LENGTH,
	MUTATION_RATE,
	POPULATION_SIZE,
	SELECTION_SCHEMES,
	TOURNAMENT_SIZE,
	GeneticAlgorithm,
	backtracking_penalty,
	decode,
	path_distance,
	reaches_end,
	stalled_points,
)
from shiproute.grid import GRID_SIZE, OBSTACLE_COUNT, Coordinate, GridEnvironment


def render_ascii(environment: GridEnvironment, path: Optional[Sequence[Coordinate]] = None) -> str:
	"""Desenha a grade em texto: S partida, E chegada, # obstáculo, * rota.

	O salto sintético até a chegada não é desenhado; x cresce para a direita
	e y para baixo, como nos movimentos do genótipo.
	"""
	cells = [['.'] * environment.size for _ in range(environment.size)]
	for ox, oy in environment.obstacles:
		cells[oy][ox] = '#'
	if path is not None:
		for px, py in path[1:-1]:
			cells[py][px] = '*'
	sx, sy = environment.start
	ex, ey = environment.end
	cells[sy][sx] = 'S'
	cells[ey][ex] = 'E'
	return '\n'.join(' '.join(row) for row in cells)


def format_report(ga: GeneticAlgorithm) -> str:
	path = ga.best_path
	lines = [
		f"Fitness value: {ga.best_fitness}",
		f"Distance: {path_distance(path):.3f}",
		f"Backtracking penalty: {backtracking_penalty(path):.1f} ({stalled_points(path)} stalled points)",
		f"Reaches end without final jump: {'yes' if reaches_end(path, ga.environment) else 'no'}",
		f"Fitness evaluations: {ga.evaluations}",
		"",
		render_ascii(ga.environment, path),
	]
	return '\n'.join(lines)


class RouteView:
	"""Janela pygame que mostra a melhor rota de cada geração."""

	def __init__(self, environment: GridEnvironment, fps: int = 30, cell: int = 28):
		self.environment = environment
		self.fps = fps
		self.cell = cell
		pygame.init()
		side = environment.size * cell
		self.screen = pygame.display.set_mode((side, side + 40))
		pygame.display.set_caption("GA Ship Route - Game View")
		self.clock = pygame.time.Clock()
		self.font = pygame.font.SysFont(None, 22)

	def _center(self, c):
		return (c[0] * self.cell + self.cell // 2, c[1] * self.cell + self.cell // 2 + 40)

	def _handle_events(self):
		for ev in pygame.event.get():
			if ev.type == pygame.QUIT:
				pygame.quit()
				raise SystemExit()
			elif ev.type == pygame.KEYDOWN and ev.key == pygame.K_ESCAPE:
				pygame.quit()
				raise SystemExit()

	def draw(self, path, caption: str):
		self._handle_events()
		env = self.environment
		self.screen.fill((20, 40, 70))
		for ox, oy in env.obstacles:
			rect = pygame.Rect(ox * self.cell, oy * self.cell + 40, self.cell, self.cell)
			pygame.draw.rect(self.screen, (200, 80, 80), rect)
		# linhas da grade
		side = env.size * self.cell
		for k in range(env.size + 1):
			pygame.draw.line(self.screen, (40, 70, 110), (k * self.cell, 40), (k * self.cell, side + 40))
			pygame.draw.line(self.screen, (40, 70, 110), (0, k * self.cell + 40), (side, k * self.cell + 40))
		# rota sem o salto final (desenhado tracejado à parte)
		points = [self._center(c) for c in path[:-1]]
		if len(points) > 1:
			pygame.draw.lines(self.screen, (240, 200, 50), False, points, 3)
		if not reaches_end(path, env):
			pygame.draw.line(self.screen, (120, 120, 120), points[-1], self._center(env.end), 1)
		pygame.draw.circle(self.screen, (50, 200, 50), self._center(env.start), self.cell // 3)
		pygame.draw.circle(self.screen, (50, 150, 240), self._center(env.end), self.cell // 3)
		txt = self.font.render(caption, True, (220, 220, 220))
		self.screen.blit(txt, (8, 12))
		pygame.display.flip()
		self.clock.tick(self.fps)

	def on_generation(self, gen, genes, fitness):
		idx = int(fitness.argmax())
		path = decode(genes[idx], self.environment)
		self.draw(path, f"Gen {gen}  best of generation = {fitness[idx]:.6f}  (ESC to quit)")

	def wait_close(self, path, caption: str):
		while True:
			self.draw(path, caption)


def build_ga(args) -> GeneticAlgorithm:
	environment = GridEnvironment.random(size=args.size, obstacle_count=args.obstacles, seed=args.seed)
	return GeneticAlgorithm(environment,
							genotype_length=args.length,
							population_size=args.pop,
							mutation_rate=args.mut,
							crossover_rate=args.cx,
							generation_limit=args.gens,
							tournament_size=args.tournament,
							selection=args.selection,
							seed=args.seed)


def run(args):
	ga = build_ga(args)

	view = None
	if args.view:
		if PYGAME_AVAILABLE:
			view = RouteView(ga.environment, fps=args.fps)
		else:
			print("Pygame não está disponível. Instale pygame (pip install pygame) para usar --view.")

	ga.run(verbose=not args.quiet, on_generation=view.on_generation if view is not None else None)
	print(format_report(ga))

	if view is not None:
		view.wait_close(ga.best_path, f"Best fitness = {ga.best_fitness:.6f}  (ESC to quit)")
	return ga


def parse_args(argv=None):
	p = argparse.ArgumentParser(description="Otimização de rota de navio por algoritmo genético")
	p.add_argument("--size", type=int, default=GRID_SIZE, help="lado da grade")
	p.add_argument("--obstacles", type=int, default=OBSTACLE_COUNT, help="número de obstáculos aleatórios")
	p.add_argument("--length", type=int, default=GENOTYPE_LENGTH, help="número de movimentos por genótipo")
	p.add_argument("--pop", type=int, default=POPULATION_SIZE, help="tamanho da população")
	p.add_argument("--gens", type=int, default=GENERATION_LIMIT, help="número de gerações")
	p.add_argument("--mut", type=float, default=MUTATION_RATE, help="taxa de mutação por gene")
	p.add_argument("--cx", type=float, default=CROSSOVER_RATE, help="taxa de crossover")
	p.add_argument("--tournament", type=int, default=TOURNAMENT_SIZE, help="tamanho do torneio")
	p.add_argument("--selection", choices=SELECTION_SCHEMES, default='tournament', help="esquema de seleção")
	p.add_argument("--seed", type=int, help="seed aleatória (obstáculos e evolução)")
	p.add_argument("--quiet", action="store_true", help="não imprimir o progresso por geração")
	p.add_argument("--view", action="store_true", help="desenhar a evolução numa janela pygame")
	p.add_argument("--fps", type=int, default=30, help="frames por segundo na visualização")
	return p.parse_args(argv)


def main(argv=None):
	run(parse_args(argv))


if __name__ == '__main__':
	main()
