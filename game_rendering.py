from __future__ import annotations

import time
from typing import TYPE_CHECKING

from game_constants import BIRD_RADIUS, GROUND_HEIGHT, PLAYFIELD_BOTTOM, WORLD_HEIGHT, WORLD_WIDTH

if TYPE_CHECKING:
    from game_logic import RenderState


def safe_print(*args, **kwargs) -> None:
    try:
        print(*args, **kwargs)
    except BrokenPipeError:
        raise SystemExit(0)


class TerminalRenderer:
    RESET = "\033[0m"
    PIPE = "\033[92m"
    BIRD = "\033[93m"
    LEAD = "\033[95m"
    DEAD = "\033[90m"
    GROUND = "\033[33m"

    columns = 48
    rows = 20

    def __init__(self, fps: float, step_skip: int):
        self.fps = max(1.0, fps)
        self.step_skip = max(1, step_skip)
        self.frame_delay = 1.0 / self.fps
        self._last_frame = 0.0
        self._frames = 0
        self._should_stop = False

    def _cell(self, x: float, y: float) -> tuple[int, int]:
        col = int(x * self.columns / WORLD_WIDTH)
        row = int(y * self.rows / PLAYFIELD_BOTTOM)
        return col, row

    def render(self, state: RenderState) -> None:
        self._frames += 1
        if state.ended:
            self._should_stop = True
        elif self._frames % self.step_skip != 0:
            return

        now = time.monotonic()
        remaining = self.frame_delay - (now - self._last_frame)
        if remaining > 0:
            time.sleep(remaining)
            now += remaining
        self._last_frame = now

        grid = [[" "] * self.columns for _ in range(self.rows)]
        for pipe_x, width, gap_top, gap_bottom in state.pipes:
            first_col, _ = self._cell(max(0.0, pipe_x), 0.0)
            last_col, _ = self._cell(min(WORLD_WIDTH - 1.0, pipe_x + width), 0.0)
            for col in range(max(0, first_col), min(self.columns, last_col + 1)):
                for row in range(self.rows):
                    row_y = (row + 0.5) * PLAYFIELD_BOTTOM / self.rows
                    if row_y < gap_top or row_y > gap_bottom:
                        grid[row][col] = f"{self.PIPE}#{self.RESET}"

        lead_drawn = False
        for bird_x, bird_y, alive in state.birds:
            col, row = self._cell(bird_x, bird_y)
            if not (0 <= col < self.columns and 0 <= row < self.rows):
                continue
            if not alive:
                if grid[row][col] == " ":
                    grid[row][col] = f"{self.DEAD}x{self.RESET}"
                continue
            if not lead_drawn:
                grid[row][col] = f"{self.LEAD}@{self.RESET}"
                lead_drawn = True
            else:
                grid[row][col] = f"{self.BIRD}o{self.RESET}"

        generation_label = "" if state.generation is None else f"Generation {state.generation:02d} | Alive {state.alive:3d} | "
        status = "GAME OVER" if state.ended else ("ready" if not state.started else "flying")
        lines = [
            f"\033[H\033[2J=== Flappy Evolution ({state.label}) ===",
            f"{generation_label}Pipes {state.score:3d} | Best distance {state.best_fitness:8.1f} | {status}",
        ]
        horizontal = "+" + ("-" * self.columns) + "+"
        lines.append(horizontal)
        for row in grid:
            lines.append("|" + "".join(row) + "|")
        lines.append("+" + f"{self.GROUND}{'=' * self.columns}{self.RESET}" + "+")
        safe_print("\n".join(lines), end="\n" if state.ended else "", flush=True)

    def should_stop(self) -> bool:
        return self._should_stop

    def consume_flap(self) -> bool:
        return False

    def record_generation_result(self, generation: int, best_fitness: float, avg_fitness: float) -> None:
        _ = (generation, best_fitness, avg_fitness)

    def poll_events(self) -> None:
        return None

    def close(self) -> None:
        return None


class PygameRenderer:
    def __init__(self, fps: float, step_skip: int, fullscreen: bool = False):
        try:
            import pygame
        except ImportError as error:
            raise RuntimeError(
                "pygame is required for GUI rendering. Install it with: pip install pygame"
            ) from error

        self.pygame = pygame
        self.fps = max(1.0, fps)
        self.step_skip = max(1, step_skip)
        self.fullscreen = fullscreen
        self._should_stop = False
        self._flap_pending = False

        self.generation_history: list[int] = []
        self.best_history: list[float] = []
        self.avg_history: list[float] = []
        self.history_limit = 160

        pygame.init()
        pygame.display.set_caption("Flappy Evolution")
        info = pygame.display.Info()
        if fullscreen:
            self.screen = pygame.display.set_mode((info.current_w, info.current_h), pygame.FULLSCREEN)
        else:
            self.screen = pygame.display.set_mode((min(980, info.current_w), min(720, info.current_h)))

        self.window_width, self.window_height = self.screen.get_size()
        self.margin = max(16, self.window_width // 60)
        self.scale = max(0.5, (self.window_height - self.margin * 2) / WORLD_HEIGHT)
        self.world_w = int(WORLD_WIDTH * self.scale)
        self.world_h = int(WORLD_HEIGHT * self.scale)
        self.sidebar_x = self.margin * 2 + self.world_w
        self.sidebar_width = max(240, self.window_width - self.sidebar_x - self.margin)

        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("DejaVu Sans", 19)
        self.small_font = pygame.font.SysFont("DejaVu Sans", 16)

        self.colors = {
            "bg": (16, 18, 23),
            "sky": (112, 197, 206),
            "ground": (222, 216, 149),
            "pipe": (83, 170, 60),
            "pipe_edge": (46, 98, 34),
            "bird": (246, 200, 64),
            "lead": (224, 92, 92),
            "dead": (120, 120, 120),
            "border": (70, 80, 100),
            "best": (184, 132, 220),
            "avg": (120, 172, 212),
            "text": (236, 239, 244),
            "muted": (165, 172, 186),
        }

    def _to_screen(self, x: float, y: float) -> tuple[int, int]:
        return self.margin + int(x * self.scale), self.margin + int(y * self.scale)

    def _draw_text(self, text: str, x: int, y: int, color: tuple[int, int, int], small: bool = False) -> None:
        font = self.small_font if small else self.font
        surface = font.render(text, True, color)
        self.screen.blit(surface, (x, y))

    def _draw_learning_curve(self, x: int, y: int, width: int, height: int) -> int:
        self._draw_text("Learning curve (best solid, avg dotted)", x, y, self.colors["text"], small=True)
        y += 20
        rect = self.pygame.Rect(x, y, width, height)
        self.pygame.draw.rect(self.screen, (17, 20, 28), rect, border_radius=6)
        self.pygame.draw.rect(self.screen, self.colors["border"], rect, width=1, border_radius=6)

        if len(self.generation_history) < 2:
            self._draw_text("Need 2+ generations", x + 8, y + 8, self.colors["muted"], small=True)
            return y + height + 6

        values = self.best_history + self.avg_history
        minimum = min(values)
        maximum = max(values)
        span = max(1.0, maximum - minimum)
        min_generation = self.generation_history[0]
        generation_span = max(1, self.generation_history[-1] - min_generation)

        def map_point(generation: int, value: float) -> tuple[int, int]:
            px = x + 8 + int((generation - min_generation) * (width - 16) / generation_span)
            py = y + height - 8 - int((value - minimum) / span * (height - 16))
            return px, py

        best_points = [map_point(g, v) for g, v in zip(self.generation_history, self.best_history)]
        avg_points = [map_point(g, v) for g, v in zip(self.generation_history, self.avg_history)]
        self.pygame.draw.lines(self.screen, self.colors["best"], False, best_points, 2)
        for idx in range(0, len(avg_points) - 1, 2):
            self.pygame.draw.line(self.screen, self.colors["avg"], avg_points[idx], avg_points[idx + 1], 1)

        self._draw_text(f"min {minimum:.0f}", x + 8, y + height - 18, self.colors["muted"], small=True)
        self._draw_text(f"max {maximum:.0f}", x + 8, y + 4, self.colors["muted"], small=True)
        return y + height + 6

    def _handle_events(self) -> None:
        for event in self.pygame.event.get():
            if event.type == self.pygame.QUIT:
                self._should_stop = True
            elif event.type == self.pygame.KEYDOWN and event.key == self.pygame.K_ESCAPE:
                self._should_stop = True
            elif event.type == self.pygame.KEYDOWN and event.key in {self.pygame.K_SPACE, self.pygame.K_UP}:
                self._flap_pending = True
            elif event.type == self.pygame.MOUSEBUTTONDOWN and event.button == 1:
                self._flap_pending = True

    def poll_events(self) -> None:
        self._handle_events()

    def consume_flap(self) -> bool:
        flap = self._flap_pending
        self._flap_pending = False
        return flap

    def record_generation_result(self, generation: int, best_fitness: float, avg_fitness: float) -> None:
        self.generation_history.append(generation)
        self.best_history.append(best_fitness)
        self.avg_history.append(avg_fitness)
        if len(self.generation_history) > self.history_limit:
            self.generation_history = self.generation_history[-self.history_limit :]
            self.best_history = self.best_history[-self.history_limit :]
            self.avg_history = self.avg_history[-self.history_limit :]

    def render(self, state: RenderState) -> None:
        pygame = self.pygame
        self.screen.fill(self.colors["bg"])

        world_rect = pygame.Rect(self.margin, self.margin, self.world_w, self.world_h)
        self.screen.fill(self.colors["sky"], world_rect)
        ground_top = self.margin + int(PLAYFIELD_BOTTOM * self.scale)
        ground_rect = pygame.Rect(self.margin, ground_top, self.world_w, int(GROUND_HEIGHT * self.scale))
        self.screen.fill(self.colors["ground"], ground_rect)

        self.screen.set_clip(world_rect)
        for pipe_x, width, gap_top, gap_bottom in state.pipes:
            left, _ = self._to_screen(pipe_x, 0.0)
            pipe_w = int(width * self.scale)
            top_h = int(gap_top * self.scale)
            bottom_y = self.margin + int(gap_bottom * self.scale)
            for rect in (
                pygame.Rect(left, self.margin, pipe_w, top_h),
                pygame.Rect(left, bottom_y, pipe_w, max(0, ground_top - bottom_y)),
            ):
                pygame.draw.rect(self.screen, self.colors["pipe"], rect)
                pygame.draw.rect(self.screen, self.colors["pipe_edge"], rect, width=2)

        radius = max(3, int(BIRD_RADIUS * self.scale))
        lead_drawn = False
        # dead birds first so the live flock stays on top
        for bird_x, bird_y, alive in sorted(state.birds, key=lambda bird: bird[2]):
            center = self._to_screen(bird_x, bird_y)
            if not alive:
                pygame.draw.circle(self.screen, self.colors["dead"], center, radius, width=1)
                continue
            color = self.colors["bird"] if lead_drawn else self.colors["lead"]
            pygame.draw.circle(self.screen, color, center, radius)
            lead_drawn = True
        self.screen.set_clip(None)
        pygame.draw.rect(self.screen, self.colors["border"], world_rect, width=2)

        x = self.sidebar_x
        y = self.margin
        self._draw_text(f"Flappy Evolution | {state.label}", x, y, self.colors["text"])
        y += 30
        if state.generation is not None:
            self._draw_text(f"Generation {state.generation} | alive {state.alive}/{len(state.birds)}", x, y, self.colors["text"])
            y += 24
        self._draw_text(f"Pipes passed {state.score}", x, y, self.colors["text"])
        y += 24
        self._draw_text(f"Best distance {state.best_fitness:.1f}", x, y, self.colors["text"])
        y += 30
        if not state.started:
            self._draw_text("Press SPACE or click to start", x, y, self.colors["muted"], small=True)
            y += 22
        if state.ended:
            self._draw_text("Game over. Press ESC to quit.", x, y, self.colors["lead"], small=True)
            y += 22
        self._draw_text("SPACE/click: flap | ESC: quit", x, y, self.colors["muted"], small=True)
        y += 30

        if self.generation_history:
            self._draw_learning_curve(x, y, self.sidebar_width, 180)

        pygame.display.flip()
        self.clock.tick(self.fps)

    def should_stop(self) -> bool:
        return self._should_stop

    def close(self) -> None:
        self.pygame.quit()


def build_renderer(renderer_mode: str, fps: float, step_skip: int, fullscreen: bool = False) -> TerminalRenderer | PygameRenderer | None:
    if renderer_mode == "none":
        return None
    if renderer_mode == "terminal":
        return TerminalRenderer(fps=fps, step_skip=step_skip)
    if renderer_mode == "pygame":
        return PygameRenderer(fps=fps, step_skip=step_skip, fullscreen=fullscreen)
    raise ValueError(f"Unsupported renderer mode: {renderer_mode}")
