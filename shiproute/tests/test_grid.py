import numpy as np
import sys
import os
import pytest
sys.path.append(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from shiproute.grid import (
    GRID_SIZE,
    OBSTACLE_COUNT,
    ConfigurationError,
    Coordinate,
    GridEnvironment,
    Move,
    generate_random_obstacles,
    step,
)


def test_coordinate_value_semantics():
    assert Coordinate(1, 2) == Coordinate(1, 2)
    assert Coordinate(1, 2) == (1, 2)
    assert len({Coordinate(1, 2), Coordinate(1, 2), Coordinate(2, 1)}) == 2


def test_move_offsets():
    origin = Coordinate(5, 5)
    assert step(origin, Move.RIGHT) == (6, 5)
    assert step(origin, Move.LEFT) == (4, 5)
    assert step(origin, Move.DOWN) == (5, 6)
    assert step(origin, Move.UP) == (5, 4)
    assert [int(m) for m in Move] == [0, 1, 2, 3]


def test_environment_defaults():
    env = GridEnvironment()
    assert env.size == GRID_SIZE
    assert env.start == (0, 0)
    assert env.end == (GRID_SIZE - 1, GRID_SIZE - 1)
    assert env.obstacle_count == 0


def test_environment_normalizes_tuples():
    env = GridEnvironment(size=4, start=(0, 0), end=(3, 3), obstacles=[(1, 1), (1, 1), (2, 2)])
    assert isinstance(env.start, Coordinate)
    assert env.obstacles == frozenset({Coordinate(1, 1), Coordinate(2, 2)})


def test_environment_is_immutable():
    env = GridEnvironment(size=4)
    with pytest.raises(AttributeError):
        env.size = 10


def test_is_valid_bounds_and_obstacles():
    env = GridEnvironment(size=3, start=(0, 0), end=(2, 2), obstacles={(1, 1)})
    assert env.is_valid((0, 1))
    assert env.is_valid(Coordinate(2, 0))
    assert not env.is_valid((1, 1))
    assert not env.is_valid((-1, 0))
    assert not env.is_valid((0, 3))
    assert not env.is_valid((3, 3))


@pytest.mark.parametrize("kwargs", [
    {'size': 1},
    {'size': 3, 'start': (0, 0), 'end': (0, 0)},
    {'size': 3, 'start': (0, 0), 'end': (3, 3)},
    {'size': 3, 'start': (-1, 0), 'end': (2, 2)},
    {'size': 3, 'start': (0, 0), 'end': (2, 2), 'obstacles': {(0, 0)}},
    {'size': 3, 'start': (0, 0), 'end': (2, 2), 'obstacles': {(2, 2)}},
    {'size': 3, 'start': (0, 0), 'end': (2, 2), 'obstacles': {(5, 1)}},
])
def test_environment_invalid(kwargs):
    with pytest.raises(ConfigurationError):
        GridEnvironment(**kwargs)


def test_environment_full_grid_is_allowed():
    cells = {(x, y) for x in range(3) for y in range(3)} - {(0, 0), (2, 2)}
    env = GridEnvironment(size=3, start=(0, 0), end=(2, 2), obstacles=cells)
    assert env.obstacle_count == 7


def test_configuration_error_is_value_error():
    assert issubclass(ConfigurationError, ValueError)


def test_generate_random_obstacles_count_and_exclusions():
    rng = np.random.default_rng(11)
    start, end = Coordinate(0, 0), Coordinate(19, 19)
    obstacles = generate_random_obstacles(20, 30, start, end, rng)
    assert len(obstacles) == 30
    assert start not in obstacles
    assert end not in obstacles
    assert all(0 <= o.x < 20 and 0 <= o.y < 20 for o in obstacles)


def test_generate_random_obstacles_fills_grid():
    rng = np.random.default_rng(12)
    obstacles = generate_random_obstacles(3, 7, (0, 0), (2, 2), rng)
    assert obstacles == frozenset((x, y) for x in range(3) for y in range(3)) - {(0, 0), (2, 2)}


def test_generate_random_obstacles_too_many():
    with pytest.raises(ConfigurationError):
        generate_random_obstacles(3, 8, (0, 0), (2, 2), np.random.default_rng(0))
    with pytest.raises(ConfigurationError):
        generate_random_obstacles(3, -1, (0, 0), (2, 2), np.random.default_rng(0))


def test_random_environment_defaults_and_seed():
    env = GridEnvironment.random(seed=3)
    assert env.size == GRID_SIZE
    assert env.obstacle_count == OBSTACLE_COUNT
    assert env.start == (0, 0)
    assert env.end == (GRID_SIZE - 1, GRID_SIZE - 1)
    assert GridEnvironment.random(seed=3) == env


def test_random_environment_custom_points():
    env = GridEnvironment.random(size=6, obstacle_count=5, start=(1, 1), end=(4, 2), seed=8)
    assert env.start == (1, 1)
    assert env.end == (4, 2)
    assert env.obstacle_count == 5
    assert env.start not in env.obstacles and env.end not in env.obstacles


def test_environment_too_many_obstacles_for_grid():
    """Grade 2x2 não comporta três obstáculos mais partida e chegada."""
    with pytest.raises(ConfigurationError, match="no room"):
        GridEnvironment(size=2, start=(0, 0), end=(1, 1), obstacles={(0, 1), (1, 0), (5, 5)})


@pytest.mark.parametrize("kwargs", [
    {'size': 3, 'start': (0,), 'end': (2, 2)},
    {'size': 3, 'start': (0, 0), 'end': (2, 2, 2)},
    {'size': 3, 'start': 'ab', 'end': (2, 2)},
    {'size': 3, 'start': (0, 0), 'end': (2, 2), 'obstacles': [(1, 1, 1)]},
    {'size': 3, 'start': None, 'end': 7},
])
def test_environment_malformed_points(kwargs):
    with pytest.raises(ConfigurationError, match="integer pair"):
        GridEnvironment(**kwargs)


def test_random_environment_malformed_start():
    with pytest.raises(ConfigurationError):
        GridEnvironment.random(size=5, obstacle_count=2, start=(1, 2, 3))
