from __future__ import annotations

import argparse
import json
import math
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol, Sequence

from game_constants import (
    AUTOPILOT_PARAMETERS,
    BIRD_RADIUS,
    BIRD_START_Y,
    BIRD_X,
    ELITISM,
    EXPECTED_FRAME_TIME,
    FAR_DISTANCE,
    GENE_BOUNDS,
    GENE_NAMES,
    GENERATIONS,
    GRAVITY,
    JUMP_IMPULSE,
    LOOKAHEAD_FRAMES,
    MAX_DELTA_MS,
    MAX_TRAINING_FRAMES,
    MUTATION_RATE,
    MUTATION_STRENGTH,
    PIPE_COUNT,
    PIPE_FIRST_X,
    PIPE_GAP,
    PIPE_MAX_GAP_TOP,
    PIPE_MIN_GAP_TOP,
    PIPE_SPACING,
    PIPE_WIDTH,
    PLAYFIELD_BOTTOM,
    POPULATION_SIZE,
    SCROLL_SPEED,
    SEED,
    WORLD_WIDTH,
)
from game_rendering import (
    PygameRenderer as _PygameRenderer,
    TerminalRenderer as _TerminalRenderer,
    build_renderer as _build_renderer,
    safe_print,
)


class FlappyEvolutionError(Exception):
    pass


class ConfigurationError(FlappyEvolutionError, ValueError):
    """Invalid population size, gene bounds or physics constants."""


class DegenerateGenerationError(FlappyEvolutionError):
    """Every agent of a generation scored zero, so roulette weights are undefined."""


def session_codename(seed_value: int | None) -> str:
    key = int(SEED if seed_value is None else seed_value)
    adjectives = [
        "Golden",
        "Restless",
        "Crimson",
        "Silent",
        "Feathered",
        "Stubborn",
        "Lucky",
        "Azure",
    ]
    nouns = [
        "Flock",
        "Gap",
        "Updraft",
        "Wing",
        "Canyon",
        "Pipeline",
        "Glide",
        "Nest",
    ]
    adj = adjectives[abs(key) % len(adjectives)]
    noun = nouns[(abs(key) // len(adjectives)) % len(nouns)]
    return f"{adj} {noun}"


def print_run_header(mode_label: str, seed_value: int | None) -> None:
    codename = session_codename(seed_value)
    resolved_seed = SEED if seed_value is None else int(seed_value)
    safe_print("=" * 64)
    safe_print(f"{mode_label} | Session: {codename} | Seed: {resolved_seed}")
    safe_print("Objective: thread the gaps, outlive the flock, pass on the genes.")
    safe_print("=" * 64)


def build_renderer(renderer_mode: str, fps: float, step_skip: int, fullscreen: bool = False) -> TerminalRenderer | PygameRenderer | None:
    return _build_renderer(renderer_mode, fps=fps, step_skip=step_skip, fullscreen=fullscreen)


TerminalRenderer = _TerminalRenderer
PygameRenderer = _PygameRenderer


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class PolicyParameters:
    jump_cooldown: float
    trigger_distance: float
    top_margin: float
    bottom_margin: float
    jump_height: float

    def as_list(self) -> list[float]:
        return [
            self.jump_cooldown,
            self.trigger_distance,
            self.top_margin,
            self.bottom_margin,
            self.jump_height,
        ]

    @classmethod
    def from_genes(cls, genes: Sequence[float]) -> PolicyParameters:
        values = [float(value) for value in genes]
        if len(values) != len(GENE_NAMES):
            raise ConfigurationError(f"Expected {len(GENE_NAMES)} genes, got {len(values)}.")
        return cls(*values)


AUTOPILOT_POLICY = PolicyParameters.from_genes(AUTOPILOT_PARAMETERS)


def validate_gene_bounds(bounds: Sequence[Sequence[float]]) -> tuple[tuple[float, float], ...]:
    if len(bounds) != len(GENE_NAMES):
        raise ConfigurationError(f"Expected bounds for {len(GENE_NAMES)} genes, got {len(bounds)}.")
    validated = []
    for name, pair in zip(GENE_NAMES, bounds):
        low, high = float(pair[0]), float(pair[1])
        if low > high:
            raise ConfigurationError(f"Invalid bounds for {name}: min {low} > max {high}.")
        validated.append((low, high))
    return tuple(validated)


@dataclass
class TrainingConfig:
    """Flat configuration record read once when a population is built.

    Physics values are per expected frame (60 fps) and get scaled by the
    frame adjustment, so a run is comparable at any real frame rate.
    """

    population_size: int = POPULATION_SIZE
    gravity: float = GRAVITY
    scroll_speed: float = SCROLL_SPEED
    jump_impulse: float = JUMP_IMPULSE
    mutation_rate: float = MUTATION_RATE
    mutation_strength: float = MUTATION_STRENGTH
    elitism: bool = ELITISM
    anneal_mutation: bool = False
    gene_bounds: tuple[tuple[float, float], ...] = GENE_BOUNDS
    seed: int = SEED

    def validate(self) -> TrainingConfig:
        if int(self.population_size) <= 0:
            raise ConfigurationError(f"Population size must be positive, got {self.population_size}.")
        if not 0.0 <= self.mutation_rate <= 1.0:
            raise ConfigurationError(f"Mutation rate must be within [0, 1], got {self.mutation_rate}.")
        if self.mutation_strength < 0.0:
            raise ConfigurationError(f"Mutation strength must be non-negative, got {self.mutation_strength}.")
        if self.gravity < 0.0 or self.jump_impulse <= 0.0 or self.scroll_speed <= 0.0:
            raise ConfigurationError("Gravity must be non-negative; jump impulse and scroll speed must be positive.")
        validate_gene_bounds(self.gene_bounds)
        return self


@dataclass(frozen=True)
class FrameContext:
    delta_ms: float
    elapsed_ms: float = 0.0
    frame_index: int = 0
    flap_requested: bool = False

    @property
    def frame_adjustment(self) -> float:
        return self.delta_ms / EXPECTED_FRAME_TIME


def advance_frame(previous: FrameContext | None, delta_ms: float, flap_requested: bool = False) -> FrameContext:
    delta = clamp(float(delta_ms), 0.0, MAX_DELTA_MS)
    if previous is None:
        return FrameContext(delta_ms=delta, elapsed_ms=delta, frame_index=0, flap_requested=flap_requested)
    return FrameContext(
        delta_ms=delta,
        elapsed_ms=previous.elapsed_ms + delta,
        frame_index=previous.frame_index + 1,
        flap_requested=flap_requested,
    )


@dataclass(frozen=True)
class Obstacle:
    distance: float
    gap_top: float
    gap_bottom: float


class ObstacleField(Protocol):
    def next_obstacle_at(self, x: float) -> Obstacle | None: ...

    def is_solid_at(self, x: float, y: float) -> bool: ...


@dataclass
class Pipe:
    x: float
    gap_top: float
    gap_bottom: float
    width: float = PIPE_WIDTH
    passed: bool = False

    @property
    def right(self) -> float:
        return self.x + self.width


class PipeCourse:
    def __init__(
        self,
        seed: int = SEED,
        scroll_speed: float = SCROLL_SPEED,
        gap: float = PIPE_GAP,
        pipe_count: int = PIPE_COUNT,
        spacing: float = PIPE_SPACING,
        first_x: float = PIPE_FIRST_X,
        fixed_layout: bool = False,
    ):
        self.seed = seed
        self.rng = random.Random(seed)
        self.scroll_speed = scroll_speed
        self.gap = gap
        self.pipe_count = max(1, pipe_count)
        self.spacing = spacing
        self.first_x = first_x
        self.fixed_layout = fixed_layout
        self.pipes: list[Pipe] = []
        self.pipes_passed = 0
        self.reset()

    def reset(self) -> None:
        if self.fixed_layout:
            self.rng = random.Random(self.seed)
        self.pipes = [self._new_pipe(self.first_x + index * self.spacing) for index in range(self.pipe_count)]
        self.pipes_passed = 0

    def _new_pipe(self, x: float) -> Pipe:
        gap_top = self.rng.uniform(PIPE_MIN_GAP_TOP, PIPE_MAX_GAP_TOP)
        return Pipe(x=x, gap_top=gap_top, gap_bottom=gap_top + self.gap)

    def update(self, frame_adjustment: float, bird_x: float = BIRD_X) -> None:
        shift = self.scroll_speed * frame_adjustment
        for pipe in self.pipes:
            pipe.x -= shift
            if not pipe.passed and pipe.right < bird_x:
                pipe.passed = True
                self.pipes_passed += 1

        for index, pipe in enumerate(self.pipes):
            if pipe.right < 0:
                rightmost = max(other.x for other in self.pipes)
                self.pipes[index] = self._new_pipe(rightmost + self.spacing)

    def next_obstacle_at(self, x: float) -> Obstacle | None:
        ahead = [pipe for pipe in self.pipes if pipe.right >= x and pipe.x <= WORLD_WIDTH]
        if not ahead:
            return None
        nearest = min(ahead, key=lambda pipe: pipe.x)
        return Obstacle(distance=max(0.0, nearest.x - x), gap_top=nearest.gap_top, gap_bottom=nearest.gap_bottom)

    def is_solid_at(self, x: float, y: float) -> bool:
        for pipe in self.pipes:
            if pipe.x <= x <= pipe.right and (y < pipe.gap_top or y > pipe.gap_bottom):
                return True
        return False


@dataclass(frozen=True)
class SensorReading:
    distance: float
    top_offset: float
    bottom_offset: float
    velocity: float


def read_sensors(x: float, y: float, velocity: float, course: ObstacleField) -> SensorReading:
    obstacle = course.next_obstacle_at(x)
    if obstacle is None:
        return SensorReading(distance=FAR_DISTANCE, top_offset=0.0, bottom_offset=0.0, velocity=velocity)
    return SensorReading(
        distance=max(0.0, obstacle.distance),
        top_offset=y - obstacle.gap_top,
        bottom_offset=obstacle.gap_bottom - y,
        velocity=velocity,
    )


def decide_jump(features: SensorReading, parameters: PolicyParameters, time_since_last_jump: float) -> bool:
    """Jump when cooled down, close enough to the next pipe, and sinking out of the gap.

    ``top_offset`` grows as the bird drops below the gap's top edge and
    ``bottom_offset`` shrinks as it nears the bottom edge. Both are projected a
    few frames ahead with the current velocity. A lower ``jump_height`` or a
    shorter ``jump_cooldown`` can only make the bird jump more often.
    """
    if time_since_last_jump < parameters.jump_cooldown:
        return False
    if features.distance > parameters.trigger_distance:
        return False

    drift = features.velocity * LOOKAHEAD_FRAMES
    projected_top = features.top_offset + drift
    projected_bottom = features.bottom_offset - drift
    if projected_top <= parameters.top_margin:
        return False
    return projected_top > parameters.jump_height or projected_bottom < parameters.bottom_margin


@dataclass
class Bird:
    policy: PolicyParameters | None = None
    agent_id: int = 0
    x: float = BIRD_X
    y: float = BIRD_START_Y
    velocity: float = 0.0
    alive: bool = True
    fitness: float = 0.0
    elapsed_ms: float = 0.0
    last_jump_ms: float | None = None
    jumps: int = 0
    gravity: float = GRAVITY
    jump_impulse: float = JUMP_IMPULSE
    scroll_speed: float = SCROLL_SPEED
    radius: float = BIRD_RADIUS

    def spawn(self, parameters: PolicyParameters | None) -> None:
        self.policy = parameters
        self.x = BIRD_X
        self.y = BIRD_START_Y
        self.velocity = 0.0
        self.alive = True
        self.fitness = 0.0
        self.elapsed_ms = 0.0
        self.last_jump_ms = None
        self.jumps = 0

    def time_since_last_jump(self) -> float:
        if self.last_jump_ms is None:
            return math.inf
        return self.elapsed_ms - self.last_jump_ms

    def jump(self) -> None:
        self.velocity = -self.jump_impulse
        self.last_jump_ms = self.elapsed_ms
        self.jumps += 1

    def step(self, frame: FrameContext, course: ObstacleField, flap: bool = False) -> None:
        if not self.alive:
            return

        adjustment = frame.frame_adjustment
        self.elapsed_ms += frame.delta_ms
        self.velocity += self.gravity * adjustment
        self.y += self.velocity * adjustment

        if self.policy is None:
            wants_jump = flap
        else:
            features = read_sensors(self.x, self.y, self.velocity, course)
            wants_jump = decide_jump(features, self.policy, self.time_since_last_jump())
        if wants_jump:
            self.jump()

        self.fitness += self.scroll_speed * adjustment
        self.check_collision(course)

    def check_collision(self, course: ObstacleField, bounds: tuple[float, float] = (0.0, PLAYFIELD_BOTTOM)) -> bool:
        if not self.alive:
            return True

        top, bottom = bounds
        probes = [
            (self.x + self.radius, self.y),
            (self.x, self.y - self.radius),
            (self.x, self.y + self.radius),
        ]
        if self.y - self.radius < top or self.y + self.radius > bottom:
            self.alive = False
        elif any(course.is_solid_at(px, py) for px, py in probes):
            self.alive = False
        return not self.alive


def random_parameters(rng: random.Random, bounds: Sequence[tuple[float, float]] = GENE_BOUNDS) -> PolicyParameters:
    return PolicyParameters(*(rng.uniform(low, high) for low, high in bounds))


def rank_by_fitness(scored: Sequence[tuple[PolicyParameters, float]]) -> list[int]:
    return sorted(range(len(scored)), key=lambda index: (-scored[index][1], index))


def roulette_weights(fitness_values: Sequence[float]) -> list[float]:
    weights = [max(0.0, float(value)) for value in fitness_values]
    if sum(weights) <= 0.0:
        raise DegenerateGenerationError("Every agent scored zero fitness.")
    return weights


def roulette_select(
    candidates: Sequence[PolicyParameters],
    weights: Sequence[float] | None,
    rng: random.Random,
) -> PolicyParameters:
    if weights is None:
        return candidates[rng.randrange(len(candidates))]

    total = sum(weights)
    pick = rng.random() * total
    upto = 0.0
    chosen = None
    for candidate, weight in zip(candidates, weights):
        if weight <= 0.0:
            continue
        upto += weight
        chosen = candidate
        if pick < upto:
            return candidate
    # float rounding can leave pick a hair above the last running total
    return chosen


def crossover(parent_a: PolicyParameters, parent_b: PolicyParameters, rng: random.Random) -> PolicyParameters:
    genes = []
    for a, b in zip(parent_a.as_list(), parent_b.as_list()):
        genes.append(a if rng.random() < 0.5 else b)
    return PolicyParameters(*genes)


def mutate_with_parameters(
    parameters: PolicyParameters,
    mutation_rate: float,
    mutation_strength: float,
    rng: random.Random,
    bounds: Sequence[tuple[float, float]] = GENE_BOUNDS,
) -> PolicyParameters:
    genes = parameters.as_list()
    for index, (low, high) in enumerate(bounds):
        if rng.random() < mutation_rate:
            genes[index] += rng.gauss(0.0, mutation_strength * (high - low))
        genes[index] = clamp(genes[index], low, high)
    return PolicyParameters(*genes)


def mutation_schedule(generation: int) -> tuple[float, float]:
    if generation <= 10:
        return 0.20, 0.20
    if generation <= 40:
        return 0.12, 0.12
    if generation <= 100:
        return 0.08, 0.08
    return 0.05, 0.05


def evolve_generation(
    scored: Sequence[tuple[PolicyParameters, float]],
    n: int,
    rng: random.Random,
    mutation_rate: float = MUTATION_RATE,
    mutation_strength: float = MUTATION_STRENGTH,
    elitism: bool = ELITISM,
    bounds: Sequence[tuple[float, float]] = GENE_BOUNDS,
) -> list[PolicyParameters]:
    if n <= 0:
        raise ConfigurationError(f"Cannot evolve into a generation of size {n}.")
    if not scored:
        raise ConfigurationError("Cannot evolve from an empty generation.")

    ranking = rank_by_fitness(scored)
    ranked = [scored[index][0] for index in ranking]
    try:
        weights: list[float] | None = roulette_weights([scored[index][1] for index in ranking])
    except DegenerateGenerationError:
        weights = None

    next_parameters: list[PolicyParameters] = []
    if elitism:
        next_parameters.append(ranked[0])

    while len(next_parameters) < n:
        parent_a = roulette_select(ranked, weights, rng)
        parent_b = roulette_select(ranked, weights, rng)
        child = crossover(parent_a, parent_b, rng)
        next_parameters.append(mutate_with_parameters(child, mutation_rate, mutation_strength, rng, bounds))
    return next_parameters


@dataclass(frozen=True)
class GenerationSummary:
    generation: int
    best_fitness: float
    avg_fitness: float
    best_parameters: PolicyParameters


def summarize_generation(generation: int, scored: Sequence[tuple[PolicyParameters, float]]) -> GenerationSummary:
    ranking = rank_by_fitness(scored)
    best_parameters, best_fitness = scored[ranking[0]]
    avg_fitness = sum(fitness for _, fitness in scored) / len(scored)
    return GenerationSummary(generation, best_fitness, avg_fitness, best_parameters)


class Population:
    def __init__(self, config: TrainingConfig | None = None, rng: random.Random | None = None):
        self.config = (config or TrainingConfig()).validate()
        self.gene_bounds = validate_gene_bounds(self.config.gene_bounds)
        self.rng = rng if rng is not None else random.Random(self.config.seed)
        self.generation = 1
        self.size = 0
        self.birds: list[Bird] = []
        self.history: list[GenerationSummary] = []
        self.champion: PolicyParameters | None = None
        self.champion_fitness = 0.0
        self.create(self.config.population_size)

    def create(self, n: int, parameters: Sequence[PolicyParameters] | None = None) -> None:
        if n <= 0:
            raise ConfigurationError(f"Population size must be positive, got {n}.")
        if parameters is None:
            parameters = [random_parameters(self.rng, self.gene_bounds) for _ in range(n)]
        elif len(parameters) != n:
            raise ConfigurationError(f"Expected {n} parameter sets, got {len(parameters)}.")

        birds = []
        for index, genes in enumerate(parameters):
            bird = Bird(
                agent_id=index,
                gravity=self.config.gravity,
                jump_impulse=self.config.jump_impulse,
                scroll_speed=self.config.scroll_speed,
            )
            bird.spawn(genes)
            birds.append(bird)
        self.size = n
        self.birds = birds

    @property
    def alive_count(self) -> int:
        return sum(1 for bird in self.birds if bird.alive)

    def jump_all(self) -> None:
        for bird in self.birds:
            if bird.alive:
                bird.jump()

    def snapshot(self) -> list[tuple[PolicyParameters, float]]:
        return [(bird.policy, bird.fitness) for bird in self.birds]

    def update(self, frame: FrameContext, course: ObstacleField) -> bool:
        for bird in self.birds:
            if bird.alive:
                bird.step(frame, course)

        if self.alive_count > 0:
            return False
        self._evolve()
        return True

    def _evolve(self) -> None:
        scored = self.snapshot()
        summary = summarize_generation(self.generation, scored)
        self.history.append(summary)
        if self.champion is None or summary.best_fitness > self.champion_fitness:
            self.champion = summary.best_parameters
            self.champion_fitness = summary.best_fitness

        if self.config.anneal_mutation:
            mutation_rate, mutation_strength = mutation_schedule(self.generation)
        else:
            mutation_rate, mutation_strength = self.config.mutation_rate, self.config.mutation_strength

        next_parameters = evolve_generation(
            scored,
            self.size,
            self.rng,
            mutation_rate=mutation_rate,
            mutation_strength=mutation_strength,
            elitism=self.config.elitism,
            bounds=self.gene_bounds,
        )
        self.create(self.size, next_parameters)
        self.generation += 1

    def best_fitness(self) -> float:
        current = max((bird.fitness for bird in self.birds), default=0.0)
        if self.history:
            return max(current, self.history[-1].best_fitness)
        return current


@dataclass
class RenderState:
    label: str
    birds: list[tuple[float, float, bool]]
    pipes: list[tuple[float, float, float, float]]
    score: int = 0
    generation: int | None = None
    alive: int = 0
    best_fitness: float = 0.0
    started: bool = True
    ended: bool = False


def pipe_geometry(course: PipeCourse) -> list[tuple[float, float, float, float]]:
    return [(pipe.x, pipe.width, pipe.gap_top, pipe.gap_bottom) for pipe in course.pipes]


class Playable:
    label = "playable"

    def on_frame(self, frame: FrameContext) -> RenderState:
        raise NotImplementedError


class SingleBirdGame(Playable):
    def __init__(self, policy: PolicyParameters | None, course: PipeCourse | None = None, config: TrainingConfig | None = None):
        self.config = (config or TrainingConfig()).validate()
        self.course = course or PipeCourse(seed=self.config.seed, scroll_speed=self.config.scroll_speed)
        self.bird = Bird(
            gravity=self.config.gravity,
            jump_impulse=self.config.jump_impulse,
            scroll_speed=self.config.scroll_speed,
        )
        self.bird.spawn(policy)
        self.started = False
        self.ended = False

    def ready_to_start(self, frame: FrameContext) -> bool:
        raise NotImplementedError

    def on_frame(self, frame: FrameContext) -> RenderState:
        if not self.started:
            if self.ready_to_start(frame):
                self.started = True
                self.bird.jump()
            return self.render_state()

        if not self.ended:
            self.bird.step(frame, self.course, flap=frame.flap_requested)
            if self.bird.alive:
                self.course.update(frame.frame_adjustment, self.bird.x)
            else:
                self.ended = True
        return self.render_state()

    def render_state(self) -> RenderState:
        return RenderState(
            label=self.label,
            birds=[(self.bird.x, self.bird.y, self.bird.alive)],
            pipes=pipe_geometry(self.course),
            score=self.course.pipes_passed,
            alive=1 if self.bird.alive else 0,
            best_fitness=self.bird.fitness,
            started=self.started,
            ended=self.ended,
        )


class HumanControlled(SingleBirdGame):
    label = "human"

    def __init__(self, course: PipeCourse | None = None, config: TrainingConfig | None = None):
        super().__init__(None, course=course, config=config)

    def ready_to_start(self, frame: FrameContext) -> bool:
        return frame.flap_requested


class ScriptedAutopilot(SingleBirdGame):
    label = "autopilot"

    def __init__(
        self,
        parameters: PolicyParameters = AUTOPILOT_POLICY,
        course: PipeCourse | None = None,
        config: TrainingConfig | None = None,
    ):
        super().__init__(parameters, course=course, config=config)

    def ready_to_start(self, frame: FrameContext) -> bool:
        return True


class EvolvingPopulation(Playable):
    label = "training"

    def __init__(self, population: Population | None = None, course: PipeCourse | None = None):
        self.population = population or Population()
        config = self.population.config
        self.course = course or PipeCourse(seed=config.seed + 1, scroll_speed=config.scroll_speed)
        self.started = False

    def on_frame(self, frame: FrameContext) -> RenderState:
        if not self.started:
            self.started = True
            self.population.jump_all()

        if self.population.update(frame, self.course):
            self.course.reset()
            self.population.jump_all()
        else:
            self.course.update(frame.frame_adjustment)
        return self.render_state()

    def render_state(self) -> RenderState:
        return RenderState(
            label=self.label,
            birds=[(bird.x, bird.y, bird.alive) for bird in self.population.birds],
            pipes=pipe_geometry(self.course),
            score=self.course.pipes_passed,
            generation=self.population.generation,
            alive=self.population.alive_count,
            best_fitness=self.population.best_fitness(),
        )


def should_log_generation(generation: int, total_generations: int | None, log_interval: int) -> bool:
    if log_interval <= 1:
        return True
    if generation == 1:
        return True
    if total_generations is not None and generation == total_generations:
        return True
    return generation % log_interval == 0


def should_stop_early(
    best_history: list[float],
    min_generations: int = 25,
    patience: int = 15,
    plateau_delta: float = 1.0,
) -> tuple[bool, str]:
    if len(best_history) < max(min_generations, patience):
        return False, ""

    best_window = best_history[-patience:]
    if max(best_window) - min(best_window) < plateau_delta:
        return True, "plateau"
    return False, ""


def resolve_early_stop_mode(renderer_mode: str, requested_mode: str | None) -> str:
    if requested_mode in {"off", "warn", "auto"}:
        return requested_mode

    if renderer_mode == "pygame":
        return "warn"
    return "auto"


def format_parameters(parameters: PolicyParameters) -> str:
    return ", ".join(f"{name}={value:.1f}" for name, value in zip(GENE_NAMES, parameters.as_list()))


def play(
    playable: Playable,
    renderer: TerminalRenderer | PygameRenderer | None = None,
    max_frames: int | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> RenderState | None:
    frame: FrameContext | None = None
    state: RenderState | None = None
    previous = clock()
    frames = 0

    while max_frames is None or frames < max_frames:
        flap = False
        if renderer is not None:
            renderer.poll_events()
            if renderer.should_stop():
                break
            flap = renderer.consume_flap()

        now = clock()
        frame = advance_frame(frame, (now - previous) * 1000.0, flap_requested=flap)
        previous = now
        state = playable.on_frame(frame)
        frames += 1

        if renderer is not None:
            renderer.render(state)
        elif state.ended:
            break
    return state


def train(
    generations: int = GENERATIONS,
    config: TrainingConfig | None = None,
    max_frames: int = MAX_TRAINING_FRAMES,
    delta_ms: float = EXPECTED_FRAME_TIME,
    log_interval: int = 1,
    early_stop_mode: str = "auto",
    fixed_course: bool = False,
    renderer: TerminalRenderer | PygameRenderer | None = None,
    verbose: bool = True,
) -> Population:
    config = (config or TrainingConfig()).validate()
    population = Population(config)
    course = PipeCourse(seed=config.seed + 1, scroll_speed=config.scroll_speed, fixed_layout=fixed_course)
    game = EvolvingPopulation(population, course)

    if verbose:
        print_run_header("Flock Training", config.seed)
        safe_print(
            f"Run profile: population={config.population_size}, generations={generations}, "
            f"mutation={config.mutation_rate:.2f}/{config.mutation_strength:.2f}, "
            f"elitism={'on' if config.elitism else 'off'}, course={'fixed' if fixed_course else 'random'}"
        )

    frame: FrameContext | None = None
    frames = 0
    reported = 0
    last_warning_generation = -999
    try:
        while len(population.history) < generations:
            if frames >= max_frames:
                if verbose:
                    safe_print(f"\nFrame budget exhausted during generation {population.generation}.")
                break

            if renderer is not None:
                renderer.poll_events()
                if renderer.should_stop():
                    if verbose:
                        safe_print("\nRenderer requested stop. Ending run early.")
                    break

            frame = advance_frame(frame, delta_ms)
            state = game.on_frame(frame)
            frames += 1
            if renderer is not None:
                renderer.render(state)

            if reported == len(population.history):
                continue

            while reported < len(population.history):
                summary = population.history[reported]
                reported += 1
                if renderer is not None:
                    renderer.record_generation_result(summary.generation, summary.best_fitness, summary.avg_fitness)
                if verbose and should_log_generation(summary.generation, generations, log_interval):
                    safe_print(
                        f"Gen {summary.generation:02d} | best fitness={summary.best_fitness:8.1f} | "
                        f"avg fitness={summary.avg_fitness:8.1f} | frames={frames}"
                    )

            if early_stop_mode == "off":
                continue
            should_stop, stop_reason = should_stop_early([summary.best_fitness for summary in population.history])
            if not should_stop:
                continue
            if early_stop_mode == "auto":
                if verbose:
                    safe_print(f"\nEarly stop: best fitness {stop_reason} detected.")
                break
            if population.generation - last_warning_generation >= 20:
                if verbose:
                    safe_print(f"Warning: best fitness {stop_reason} detected. Continuing because early-stop mode is warn.")
                last_warning_generation = population.generation
    finally:
        if renderer is not None:
            renderer.close()

    if verbose:
        print_training_summary(population)
    return population


def print_training_summary(population: Population) -> None:
    safe_print("\n" + "=" * 64)
    safe_print("TRAINING SUMMARY")
    safe_print("=" * 64)
    safe_print(f"  Generations completed : {len(population.history)}")
    safe_print(f"  Population size       : {population.size}")
    if population.champion is None:
        safe_print("  No generation finished yet; no champion to report.")
    else:
        safe_print(f"  Champion fitness      : {population.champion_fitness:.1f}")
        safe_print(f"  Champion genes        : {format_parameters(population.champion)}")
    safe_print("=" * 64)


def save_champion_file(
    file_path: str,
    parameters: PolicyParameters,
    fitness: float,
    generation: int,
    seed: int,
) -> None:
    target = Path(file_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "seed": seed,
        "generation": generation,
        "fitness": fitness,
        "saved_at": int(time.time()),
        "genes": dict(zip(GENE_NAMES, parameters.as_list())),
    }
    target.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def load_champion_file(file_path: str) -> tuple[PolicyParameters, dict[str, object]]:
    try:
        payload = json.loads(Path(file_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        raise SystemExit(f"Cannot read champion file {file_path}: {error}") from error

    genes_raw = payload.get("genes") if isinstance(payload, dict) else None
    if not isinstance(genes_raw, dict) or any(name not in genes_raw for name in GENE_NAMES):
        raise SystemExit("Champion file has no usable genes.")
    try:
        parameters = PolicyParameters.from_genes([genes_raw[name] for name in GENE_NAMES])
    except (TypeError, ValueError) as error:
        raise SystemExit(f"Champion file has invalid genes: {error}") from error

    metadata = {
        "seed": payload.get("seed"),
        "generation": payload.get("generation"),
        "fitness": payload.get("fitness"),
        "saved_at": payload.get("saved_at"),
    }
    return parameters, metadata


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Flappy bird clone with human, autopilot and evolutionary training modes.")
    parser.add_argument(
        "--mode",
        choices=["human", "autopilot", "train"],
        default="train",
        help="Play yourself, watch the scripted autopilot, or train a flock (default: train).",
    )
    parser.add_argument(
        "--renderer",
        choices=["none", "terminal", "pygame"],
        default=None,
        help="Renderer to use (default: pygame for human/autopilot, none for train).",
    )
    parser.add_argument("--fps", type=float, default=60.0, help="Maximum render frames per second (default: 60).")
    parser.add_argument(
        "--render-step-skip",
        type=int,
        default=2,
        help="Render every N frames in the terminal renderer (default: 2).",
    )
    parser.add_argument("--fullscreen", action="store_true", help="Start pygame renderer in fullscreen mode.")
    parser.add_argument(
        "--generations",
        type=int,
        default=GENERATIONS,
        help=f"Number of generations to train (default: {GENERATIONS}).",
    )
    parser.add_argument(
        "--population",
        type=int,
        default=POPULATION_SIZE,
        help=f"Birds per generation (default: {POPULATION_SIZE}).",
    )
    parser.add_argument("--seed", type=int, default=SEED, help="Random seed for reproducibility.")
    parser.add_argument(
        "--mutation-rate",
        type=float,
        default=MUTATION_RATE,
        help=f"Per-gene mutation probability (default: {MUTATION_RATE}).",
    )
    parser.add_argument(
        "--mutation-strength",
        type=float,
        default=MUTATION_STRENGTH,
        help=f"Mutation noise as a fraction of each gene's range (default: {MUTATION_STRENGTH}).",
    )
    parser.add_argument("--anneal-mutation", action="store_true", help="Shrink mutation rate and strength as generations advance.")
    parser.add_argument("--no-elitism", action="store_true", help="Do not carry the best bird unchanged into the next generation.")
    parser.add_argument("--fixed-course", action="store_true", help="Replay the same pipe layout every generation.")
    parser.add_argument(
        "--max-frames",
        type=int,
        default=MAX_TRAINING_FRAMES,
        help=f"Frame budget for a training run (default: {MAX_TRAINING_FRAMES}).",
    )
    parser.add_argument(
        "--early-stop",
        choices=["off", "warn", "auto"],
        default=None,
        help="Early-stop behavior: off (never), warn (notify only), auto (stop). Default: warn for pygame, auto otherwise.",
    )
    parser.add_argument(
        "--log-interval",
        type=int,
        default=1,
        help="Print generation stats every N generations (default: 1).",
    )
    parser.add_argument(
        "--save-champion",
        default=None,
        help="After training, write the champion genes to this JSON file.",
    )
    parser.add_argument(
        "--champion",
        default=None,
        help="In autopilot mode, fly with genes loaded from this JSON file instead of the hand-tuned defaults.",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> TrainingConfig:
    try:
        return TrainingConfig(
            population_size=args.population,
            mutation_rate=args.mutation_rate,
            mutation_strength=args.mutation_strength,
            elitism=not args.no_elitism,
            anneal_mutation=args.anneal_mutation,
            seed=args.seed,
        ).validate()
    except ConfigurationError as error:
        raise SystemExit(f"Invalid configuration: {error}") from error


def run_cli(args: argparse.Namespace) -> None:
    config = build_config(args)
    default_renderer = "none" if args.mode == "train" else "pygame"
    renderer_mode = args.renderer or default_renderer

    try:
        renderer = build_renderer(renderer_mode, fps=args.fps, step_skip=args.render_step_skip, fullscreen=args.fullscreen)
    except RuntimeError as error:
        raise SystemExit(str(error)) from error

    if args.mode == "train":
        population = train(
            generations=max(1, args.generations),
            config=config,
            max_frames=max(1, args.max_frames),
            log_interval=max(1, args.log_interval),
            early_stop_mode=resolve_early_stop_mode(renderer_mode, args.early_stop),
            fixed_course=args.fixed_course,
            renderer=renderer,
        )
        if args.save_champion:
            if population.champion is None:
                raise SystemExit("No generation finished; nothing to save.")
            save_champion_file(
                args.save_champion,
                population.champion,
                population.champion_fitness,
                generation=len(population.history),
                seed=config.seed,
            )
            safe_print(f"Champion saved to {args.save_champion}")
        return

    if renderer is None:
        raise SystemExit(f"{args.mode} mode requires a renderer (use --renderer pygame or --renderer terminal).")

    if args.mode == "human":
        if renderer_mode != "pygame":
            renderer.close()
            raise SystemExit("human mode reads flaps from the pygame window (use --renderer pygame).")
        playable: Playable = HumanControlled(config=config)
    else:
        parameters = AUTOPILOT_POLICY
        if args.champion:
            parameters, metadata = load_champion_file(args.champion)
            safe_print(f"Loaded champion from generation {metadata['generation']} (fitness {metadata['fitness']}).")
        playable = ScriptedAutopilot(parameters, config=config)

    print_run_header(f"{playable.label.capitalize()} Flight", config.seed)
    try:
        state = play(playable, renderer)
    finally:
        renderer.close()
    if state is not None:
        safe_print(f"Pipes passed: {state.score} | distance={state.best_fitness:.1f}")
