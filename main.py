from __future__ import annotations

import signal

import game_logic as core
from game_constants import (
    BIRD_START_Y,
    EXPECTED_FRAME_TIME,
    FAR_DISTANCE,
    GENE_BOUNDS,
    GENE_NAMES,
    PIPE_COUNT,
    POPULATION_SIZE,
    SEED,
)

signal.signal(signal.SIGPIPE, signal.SIG_DFL)


def safe_print(*args, **kwargs) -> None:
    return core.safe_print(*args, **kwargs)


FlappyEvolutionError = core.FlappyEvolutionError
ConfigurationError = core.ConfigurationError
DegenerateGenerationError = core.DegenerateGenerationError

PolicyParameters = core.PolicyParameters
AUTOPILOT_POLICY = core.AUTOPILOT_POLICY
TrainingConfig = core.TrainingConfig
FrameContext = core.FrameContext
Obstacle = core.Obstacle
Pipe = core.Pipe
PipeCourse = core.PipeCourse
SensorReading = core.SensorReading
Bird = core.Bird
Population = core.Population
GenerationSummary = core.GenerationSummary
RenderState = core.RenderState
Playable = core.Playable
HumanControlled = core.HumanControlled
ScriptedAutopilot = core.ScriptedAutopilot
EvolvingPopulation = core.EvolvingPopulation
TerminalRenderer = core.TerminalRenderer
PygameRenderer = core.PygameRenderer

build_renderer = core.build_renderer
validate_gene_bounds = core.validate_gene_bounds
advance_frame = core.advance_frame
read_sensors = core.read_sensors
decide_jump = core.decide_jump
random_parameters = core.random_parameters
rank_by_fitness = core.rank_by_fitness
roulette_weights = core.roulette_weights
roulette_select = core.roulette_select
crossover = core.crossover
mutate_with_parameters = core.mutate_with_parameters
mutation_schedule = core.mutation_schedule
evolve_generation = core.evolve_generation
summarize_generation = core.summarize_generation
should_log_generation = core.should_log_generation
should_stop_early = core.should_stop_early
resolve_early_stop_mode = core.resolve_early_stop_mode
session_codename = core.session_codename
format_parameters = core.format_parameters
save_champion_file = core.save_champion_file
load_champion_file = core.load_champion_file
play = core.play
train = core.train
build_config = core.build_config


def parse_args(argv: list[str] | None = None):
    return core.parse_args(argv)


def simulate_history(
    seed: int = SEED,
    generations: int = 5,
    population_size: int = 20,
    max_frames: int = 50_000,
) -> list[GenerationSummary]:
    """Headless, silent training run used by the web service."""
    config = TrainingConfig(population_size=population_size, seed=seed)
    population = train(
        generations=generations,
        config=config,
        max_frames=max_frames,
        delta_ms=EXPECTED_FRAME_TIME,
        early_stop_mode="off",
        fixed_course=True,
        verbose=False,
    )
    return population.history


if __name__ == "__main__":
    args = parse_args()
    core.run_cli(args)
