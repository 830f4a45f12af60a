"""
Falling Squares — Pygame (single file)
DODGE • SHOOT • LIVES • HIGH SCORE

How to run:
1) Install Python 3.10+ and Pygame:    pip install pygame
2) Put font.ttf, player_death.ogg, enemy_death.ogg and shot.ogg in ./resources
3) Run:                                python falling_squares.py

Controls:
- Move: Arrow Keys or WASD
- Shoot: ENTER
- From Menu / Game Over: SPACE to start or retry
- Quit: ESC (or close the window)

Goal: Squares rain from the top of the screen. Touching one costs a life; three
lives per attempt. Bullets chip health off the squares and every hit scores the
health the square had left. The best score is kept in resources/high_score.

Layout:
- Shapes (Circle / Box) with one overlap function per shape pair
- Player / Square / Bullet entities and a stateless square spawner
- World: one frame of simulation (move -> spawn -> collide -> prune)
- Session: Menu / Playing / GameOver state machine, one handler per state
- HighScoreStore, SoundBank and Renderer: file, audio and drawing collaborators
- Game: the pygame window and frame loop
"""

from __future__ import annotations
import dataclasses
import logging
import math
import random
import sys
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple, Union

import pygame
from pygame import Surface
from pygame.math import Vector2 as V2

logger = logging.getLogger(__name__)

# ---------------------------- Config & Constants ---------------------------- #
WIDTH, HEIGHT = 1000, 700
FPS = 60
TITLE = "Falling Squares"

RESOURCES_DIR = Path("resources")
FONT_FILE = "font.ttf"
HIGH_SCORE_FILE = "high_score"
FONT_SIZES = (24, 32, 100, 120)

# Colors (RGB)
MAIN_COLOR = (230, 230, 230)
BACKGROUND_COLOR = (0, 0, 0)
ACCENT_COLOR = (204, 0, 0)

# Player
PLAYER_RADIUS = 10.0
PLAYER_SPEED = 320.0
PLAYER_SPAWN_OFFSET = 100.0  # distance from the bottom edge
RELOAD_INTERVAL = 0.3
LIVES_START = 3

# Bullets
BULLET_WIDTH, BULLET_HEIGHT = 8.0, 12.0
BULLET_SPEED = 1280.0
BULLET_DAMAGE = 4.0

# Squares
SPAWN_CHANCE = 0.1
SQUARE_MIN_SIZE, SQUARE_MAX_SIZE = 16.0, 64.0
SQUARE_MIN_SPEED, SQUARE_MAX_SPEED = 50.0, 150.0
SQUARE_SPAWN_Y = -10.0
SQUARE_HEALTH_FACTOR = 0.25

EXIT_CODE_QUIT = 1


class AssetError(RuntimeError):
    """A font or sound clip needed before the first frame could not be loaded."""


# ---------------------------- Utility Helpers ------------------------------ #

def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def round_half_away(x: float) -> float:
    """Round to the nearest whole number, halves away from zero (4.5 -> 5)."""
    return math.copysign(math.floor(abs(x) + 0.5), x)


def uniform(rng: random.Random, lo: float, hi: float) -> float:
    # half-open [lo, hi), unlike random.uniform
    return lo + (hi - lo) * rng.random()


def format_score(value: float) -> str:
    return f"{value:.0f}"


# ------------------------------- Shapes ------------------------------------ #
@dataclass
class Circle:
    center: V2
    radius: float


@dataclass
class Box:
    """Axis-aligned rectangle, top-left corner plus size."""
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h


Shape = Union[Circle, Box]


def circle_circle_overlap(a: Circle, b: Circle) -> bool:
    return a.center.distance_squared_to(b.center) <= (a.radius + b.radius) ** 2


def circle_box_overlap(c: Circle, b: Box) -> bool:
    nearest = V2(clamp(c.center.x, b.x, b.right), clamp(c.center.y, b.y, b.bottom))
    return c.center.distance_squared_to(nearest) <= c.radius ** 2


def box_box_overlap(a: Box, b: Box) -> bool:
    return a.x <= b.right and a.right >= b.x and a.y <= b.bottom and a.bottom >= b.y


_OVERLAP: Dict[Tuple[type, type], Callable[[Shape, Shape], bool]] = {
    (Circle, Circle): circle_circle_overlap,
    (Circle, Box): circle_box_overlap,
    (Box, Circle): lambda b, c: circle_box_overlap(c, b),
    (Box, Box): box_box_overlap,
}


def overlaps(a: Shape, b: Shape) -> bool:
    """Touching edges count as an overlap."""
    return _OVERLAP[type(a), type(b)](a, b)


# ------------------------------- Input ------------------------------------- #
@dataclass(frozen=True)
class Controls:
    """Held keys sampled once per frame."""
    left: bool = False
    right: bool = False
    up: bool = False
    down: bool = False
    fire: bool = False
    start: bool = False
    exit: bool = False

    @classmethod
    def from_keys(cls, keys) -> Controls:
        return cls(
            left=bool(keys[pygame.K_LEFT] or keys[pygame.K_a]),
            right=bool(keys[pygame.K_RIGHT] or keys[pygame.K_d]),
            up=bool(keys[pygame.K_UP] or keys[pygame.K_w]),
            down=bool(keys[pygame.K_DOWN] or keys[pygame.K_s]),
            fire=bool(keys[pygame.K_RETURN]),
            start=bool(keys[pygame.K_SPACE]),
            exit=bool(keys[pygame.K_ESCAPE]),
        )

    def direction(self) -> V2:
        # opposing keys cancel out
        return V2(float(self.right) - float(self.left), float(self.down) - float(self.up))


# ------------------------------ Audio cues --------------------------------- #
class Cue(Enum):
    DEATH = "player_death.ogg"
    KILL = "enemy_death.ogg"
    SHOT = "shot.ogg"


class AudioPlayer(Protocol):
    def play_once(self, cue: Cue) -> None:
        ...


class ScoreStore(Protocol):
    def read(self) -> float:
        ...

    def write(self, value: float) -> None:
        ...


# ------------------------------ Entities ----------------------------------- #
@dataclass
class Player:
    pos: V2
    lives: int = LIVES_START
    radius: float = PLAYER_RADIUS
    speed: float = PLAYER_SPEED
    reload: float = RELOAD_INTERVAL
    reload_timer: float = 0.0
    dead: bool = False

    @classmethod
    def spawn(cls, width: float, height: float, lives: int) -> Player:
        return cls(V2(width / 2, height - PLAYER_SPAWN_OFFSET), lives=lives)

    def update(self, dt: float, direction: V2, bound: float) -> None:
        if direction.length_squared() == 0:
            return
        step = direction.normalize() * self.speed * dt
        # the vertical axis is clamped against the play-area width as well
        self.pos.x = clamp(self.pos.x + step.x, self.radius, bound - self.radius)
        self.pos.y = clamp(self.pos.y + step.y, self.radius, bound - self.radius)

    def can_fire(self) -> bool:
        return self.reload_timer <= 0

    def collider(self) -> Circle:
        return Circle(self.pos, self.radius)


@dataclass
class Square:
    box: Box
    speed: float
    health: float

    def update(self, dt: float) -> None:
        self.box.y += self.speed * dt

    def alive(self, screen_height: float) -> bool:
        return self.box.y < screen_height + self.box.h and self.health > 0


@dataclass
class Bullet:
    box: Box
    speed: float = BULLET_SPEED
    damage: float = BULLET_DAMAGE
    hit: bool = False

    @classmethod
    def fired_from(cls, pos: V2) -> Bullet:
        return cls(Box(pos.x - BULLET_WIDTH / 2, pos.y - BULLET_HEIGHT / 2, BULLET_WIDTH, BULLET_HEIGHT))

    def update(self, dt: float) -> None:
        self.box.y -= self.speed * dt

    def alive(self) -> bool:
        return self.box.y > -self.box.h and not self.hit


def spawn_square(rng: random.Random, width: float, chance: float = SPAWN_CHANCE) -> Optional[Square]:
    """Roll once for a new square above the screen; None when the roll fails."""
    if rng.random() >= chance:
        return None
    size = uniform(rng, SQUARE_MIN_SIZE, SQUARE_MAX_SIZE)
    x = uniform(rng, size, width - size)
    speed = uniform(rng, SQUARE_MIN_SPEED, SQUARE_MAX_SPEED)
    health = round_half_away(size * SQUARE_HEALTH_FACTOR)
    return Square(Box(x, SQUARE_SPAWN_Y, size, size), speed, health)


# ------------------------------- World ------------------------------------- #
class World:
    """Entities of one attempt and the per-frame simulation step.

    ``step`` runs the move, spawn, advance and collision passes in that order;
    the caller applies life loss and then calls ``prune``.
    """

    def __init__(
        self,
        width: float = WIDTH,
        height: float = HEIGHT,
        rng: Optional[random.Random] = None,
        spawn_chance: float = SPAWN_CHANCE,
    ):
        self.width = width
        self.height = height
        self.rng = rng if rng is not None else random.Random()
        self.spawn_chance = spawn_chance

        self.player = Player.spawn(width, height, LIVES_START)
        self.squares: List[Square] = []
        self.bullets: List[Bullet] = []
        self.score = 0.0

    def new_attempt(self, lives: int) -> None:
        self.squares.clear()
        self.bullets.clear()
        self.player = Player.spawn(self.width, self.height, lives)

    def step(self, controls: Controls, dt: float, audio: AudioPlayer) -> None:
        self._update_player(controls, dt, audio)

        square = spawn_square(self.rng, self.width, self.spawn_chance)
        if square is not None:
            self.squares.append(square)

        for b in self.bullets:
            b.update(dt)
        for s in self.squares:
            s.update(dt)

        self._handle_collisions(audio)

    def prune(self) -> None:
        self.squares = [s for s in self.squares if s.alive(self.height)]
        self.bullets = [b for b in self.bullets if b.alive()]

    def _update_player(self, controls: Controls, dt: float, audio: AudioPlayer) -> None:
        player = self.player
        player.update(dt, controls.direction(), self.width)
        if controls.fire and player.can_fire():
            self.bullets.append(Bullet.fired_from(player.pos))
            audio.play_once(Cue.SHOT)
            player.reload_timer = player.reload
        player.reload_timer -= dt

    def _handle_collisions(self, audio: AudioPlayer) -> None:
        # Bullets vs squares. A bullet damages every square it touches this
        # frame; a square already destroyed in this pass still absorbs the
        # bullet but takes no damage and scores nothing.
        for b in self.bullets:
            for s in self.squares:
                if not overlaps(b.box, s.box):
                    continue
                b.hit = True
                if s.health > 0:
                    self.score += s.health
                    s.health -= b.damage
                    audio.play_once(Cue.KILL)

        collider = self.player.collider()
        self.player.dead = any(overlaps(collider, s.box) for s in self.squares)


# ------------------------------ Game State ---------------------------------- #
class GameState(Enum):
    MENU = auto()
    PLAYING = auto()
    GAME_OVER = auto()
    QUIT = auto()


class Session:
    """Menu / Playing / GameOver flow around a World.

    Each ``update_*`` handler runs for one frame and returns the next state,
    or None to stay put. QUIT is terminal: the frame loop stops on it.
    """

    def __init__(self, world: World, store: ScoreStore, audio: AudioPlayer):
        self.world = world
        self.store = store
        self.audio = audio
        self.state = GameState.MENU
        self.high_score = store.read()
        self._handlers: Dict[GameState, Callable[[Controls, float], Optional[GameState]]] = {
            GameState.MENU: self.update_menu,
            GameState.PLAYING: self.update_play,
            GameState.GAME_OVER: self.update_game_over,
        }

    @property
    def score(self) -> float:
        return self.world.score

    def new_record(self) -> bool:
        return self.world.score > self.high_score

    def update(self, controls: Controls, dt: float) -> GameState:
        if self.state is GameState.QUIT:
            return self.state
        next_state = self._handlers[self.state](controls, dt)
        if next_state is not None and next_state is not self.state:
            logger.info("%s -> %s", self.state.name, next_state.name)
            self.state = next_state
        return self.state

    # ---------------------- Handlers ------------------------- #
    def update_menu(self, controls: Controls, dt: float) -> Optional[GameState]:
        if controls.exit:
            return GameState.QUIT
        if controls.start:
            self._start()
            return GameState.PLAYING
        return None

    def update_play(self, controls: Controls, dt: float) -> Optional[GameState]:
        if controls.exit:
            return GameState.QUIT

        world = self.world
        world.step(controls, dt, self.audio)

        next_state = None
        if world.player.dead:
            self.audio.play_once(Cue.DEATH)
            if world.player.lives > 1:
                world.new_attempt(world.player.lives - 1)
                logger.info("Player died, %d lives left", world.player.lives)
            else:
                logger.info("Game over with score %s", world.score)
                next_state = GameState.GAME_OVER

        world.prune()
        return next_state

    def update_game_over(self, controls: Controls, dt: float) -> Optional[GameState]:
        if controls.exit:
            self._save_record()
            return GameState.QUIT
        if controls.start:
            self._save_record()
            self._start()
            return GameState.PLAYING
        return None

    # ---------------------- Reset / Persist ------------------ #
    def _start(self) -> None:
        self.world.score = 0.0
        self.world.new_attempt(LIVES_START)

    def _save_record(self) -> None:
        if self.new_record():
            self.high_score = self.world.score
            self.store.write(self.high_score)


# ----------------------------- Persistence ---------------------------------- #
class HighScoreStore:
    """The high score as decimal text in a single file."""

    def __init__(self, path: Union[str, Path] = RESOURCES_DIR / HIGH_SCORE_FILE):
        self.path = Path(path)

    def read(self) -> float:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return 0.0
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read high score from %s: %s", self.path, exc)
            return 0.0
        try:
            value = float(text)
        except ValueError:
            value = math.nan
        if not math.isfinite(value):
            logger.warning("Ignoring unreadable high score in %s: %r", self.path, text)
            return 0.0
        return value

    def write(self, value: float) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(str(float(value)), encoding="utf-8")
        except OSError:
            logger.exception("Could not save high score to %s", self.path)
        else:
            logger.info("Saved high score %s to %s", value, self.path)


# ------------------------------ Sound & Draw -------------------------------- #
class SoundBank:
    def __init__(self, folder: Path):
        self.sounds: Dict[Cue, pygame.mixer.Sound] = {}
        for cue in Cue:
            path = folder / cue.value
            try:
                self.sounds[cue] = pygame.mixer.Sound(str(path))
            except (pygame.error, OSError) as exc:
                raise AssetError(f"Failed loading {cue.name.lower()} sound {path}: {exc}") from exc
            logger.debug("Loaded %s", path)

    def play_once(self, cue: Cue) -> None:
        self.sounds[cue].play()


class Renderer:
    def __init__(self, surface: Surface, font_path: Path):
        self.surface = surface
        self.fonts: Dict[int, pygame.font.Font] = {}
        for size in FONT_SIZES:
            try:
                self.fonts[size] = pygame.font.Font(str(font_path), size)
            except (pygame.error, OSError) as exc:
                raise AssetError(f"Failed loading font {font_path}: {exc}") from exc
        logger.debug("Loaded %s", font_path)

    def clear(self) -> None:
        self.surface.fill(BACKGROUND_COLOR)

    def draw_circle(self, center: V2, radius: float, color: Tuple[int, int, int]) -> None:
        pygame.draw.circle(self.surface, color, center, radius)

    def draw_rectangle(self, box: Box, color: Tuple[int, int, int]) -> None:
        pygame.draw.rect(self.surface, color, (box.x, box.y, box.w, box.h))

    def draw_text(
        self,
        text: str,
        pos: Tuple[float, float],
        size: int,
        color: Tuple[int, int, int],
        centered: bool = True,
    ) -> None:
        img = self.fonts[size].render(text, True, color)
        if centered:
            self.surface.blit(img, img.get_rect(center=pos))
        else:
            self.surface.blit(img, pos)

    def present(self) -> None:
        pygame.display.flip()


# ------------------------------- Game --------------------------------------- #
class Game:
    def __init__(self, resources: Path = RESOURCES_DIR):
        pygame.init()
        try:
            pygame.mixer.init()
        except pygame.error as exc:
            raise AssetError(f"Audio device unavailable: {exc}") from exc
        pygame.display.set_caption(TITLE)
        self.screen = pygame.display.set_mode((WIDTH, HEIGHT))
        self.clock = pygame.time.Clock()

        self.renderer = Renderer(self.screen, resources / FONT_FILE)
        self.audio = SoundBank(resources)
        self.session = Session(World(WIDTH, HEIGHT), HighScoreStore(resources / HIGH_SCORE_FILE), self.audio)
        self._draw = {
            GameState.MENU: self.draw_menu,
            GameState.PLAYING: self.draw_play,
            GameState.GAME_OVER: self.draw_game_over,
        }

    def _poll_controls(self) -> Controls:
        closed = any(e.type == pygame.QUIT for e in pygame.event.get())
        controls = Controls.from_keys(pygame.key.get_pressed())
        if closed:
            controls = dataclasses.replace(controls, exit=True)
        return controls

    # ---------------------- Draw ----------------------------- #
    def draw_menu(self) -> None:
        r = self.renderer
        r.draw_text(TITLE.upper(), (WIDTH / 2, HEIGHT / 2 - 60), 100, ACCENT_COLOR)
        r.draw_text("Press SPACE to start", (WIDTH / 2, HEIGHT / 2 + 50), 32, MAIN_COLOR)
        r.draw_text("Press ESC to exit", (WIDTH / 2, HEIGHT / 2 + 110), 32, MAIN_COLOR)

    def draw_play(self) -> None:
        r = self.renderer
        world = self.session.world
        for b in world.bullets:
            r.draw_rectangle(b.box, ACCENT_COLOR)
        for s in world.squares:
            r.draw_rectangle(s.box, ACCENT_COLOR)
        r.draw_circle(world.player.pos, world.player.radius, MAIN_COLOR)
        r.draw_text(f"Score: {format_score(world.score)}", (14, 10), 24, MAIN_COLOR, centered=False)
        r.draw_text(f"Lives: {world.player.lives}", (14, 38), 24, MAIN_COLOR, centered=False)

    def draw_game_over(self) -> None:
        self.draw_play()
        r = self.renderer
        session = self.session
        if session.new_record():
            r.draw_text("New record!", (WIDTH / 2, HEIGHT / 2 - 200), 32, ACCENT_COLOR)
        r.draw_text("GAME OVER!", (WIDTH / 2, HEIGHT / 2 - 90), 120, ACCENT_COLOR)
        r.draw_text(f"Score: {format_score(session.score)}", (WIDTH / 2, HEIGHT / 2 + 10), 32, ACCENT_COLOR)
        r.draw_text(f"High score: {format_score(session.high_score)}", (WIDTH / 2, HEIGHT / 2 + 70), 32, ACCENT_COLOR)
        r.draw_text("Press SPACE to retry", (WIDTH / 2, HEIGHT - 120), 32, MAIN_COLOR)
        r.draw_text("Press ESC to exit", (WIDTH / 2, HEIGHT - 60), 32, MAIN_COLOR)

    # ---------------------- Main Loop ------------------------ #
    def run(self) -> int:
        while True:
            dt = self.clock.tick(FPS) / 1000.0
            controls = self._poll_controls()

            self.renderer.clear()
            ran = self.session.state
            if self.session.update(controls, dt) is GameState.QUIT:
                break
            self._draw[ran]()
            self.renderer.present()

        pygame.quit()
        return EXIT_CODE_QUIT


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        game = Game()
    except AssetError as exc:
        pygame.quit()
        raise SystemExit(f"{TITLE}: {exc}") from exc
    return game.run()


if __name__ == "__main__":
    sys.exit(main())
