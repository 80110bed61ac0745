WORLD_WIDTH = 288
WORLD_HEIGHT = 512
GROUND_HEIGHT = 112
PLAYFIELD_BOTTOM = WORLD_HEIGHT - GROUND_HEIGHT

EXPECTED_FPS = 60
EXPECTED_FRAME_TIME = 1000.0 / EXPECTED_FPS  # ms
MAX_DELTA_MS = 4 * EXPECTED_FRAME_TIME

# Physics is expressed per expected frame and scaled by the frame adjustment.
GRAVITY = 0.41
JUMP_IMPULSE = 6.0
SCROLL_SPEED = 2.0

BIRD_X = 60.0
BIRD_START_Y = 200.0
BIRD_RADIUS = 12.0

PIPE_WIDTH = 52.0
PIPE_GAP = 120.0
PIPE_SPACING = 144.0
PIPE_COUNT = 3
PIPE_FIRST_X = 288.0
PIPE_MIN_GAP_TOP = 60.0
PIPE_MAX_GAP_TOP = 240.0

FAR_DISTANCE = 1e9
LOOKAHEAD_FRAMES = 4.0

POPULATION_SIZE = 50
MUTATION_RATE = 0.1
MUTATION_STRENGTH = 0.15
ELITISM = True
SEED = 42
GENERATIONS = 30
MAX_TRAINING_FRAMES = 200_000

GENE_NAMES = ("jump_cooldown", "trigger_distance", "top_margin", "bottom_margin", "jump_height")
GENE_BOUNDS = (
    (50.0, 600.0),
    (0.0, 288.0),
    (0.0, 120.0),
    (0.0, 120.0),
    (0.0, 200.0),
)

# Hand-tuned genes flown by the single autopilot bird.
AUTOPILOT_PARAMETERS = (150.0, 150.0, 50.0, 60.0, 90.0)
