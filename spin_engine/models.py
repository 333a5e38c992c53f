from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Symbol(Enum):
    TEN = 'TEN'
    JACK = 'JACK'
    QUEEN = 'QUEEN'
    KING = 'KING'
    ACE = 'ACE'
    GRAPE = 'GRAPE'
    BELL = 'BELL'
    BAR = 'BAR'
    CHERRY = 'CHERRY'
    SEVEN = 'SEVEN'
    WILD = 'WILD'
    SCATTER = 'SCATTER'


LOW_PAY_SYMBOLS = (Symbol.TEN, Symbol.JACK, Symbol.QUEEN, Symbol.KING, Symbol.ACE)
HIGH_PAY_SYMBOLS = (Symbol.GRAPE, Symbol.BELL, Symbol.BAR, Symbol.SEVEN, Symbol.CHERRY)


class GameTheme(Enum):
    NEON = 'NEON'
    EGYPT = 'EGYPT'
    DRAGON = 'DRAGON'
    PIRATE = 'PIRATE'
    SPACE = 'SPACE'
    CANDY = 'CANDY'
    JUNGLE = 'JUNGLE'
    UNDERWATER = 'UNDERWATER'
    WESTERN = 'WESTERN'
    SAMURAI = 'SAMURAI'
    PIGGY = 'PIGGY'


class GameStatus(Enum):
    IDLE = 'IDLE'
    SPINNING = 'SPINNING'
    STOPPING = 'STOPPING'
    WIN_ANIMATION = 'WIN_ANIMATION'
    SCATTER_SHOWCASE = 'SCATTER_SHOWCASE'
    FREE_SPIN_INTRO = 'FREE_SPIN_INTRO'
    FREE_SPIN_OUTRO = 'FREE_SPIN_OUTRO'


# grid[col][row]
Grid = Tuple[Tuple[Symbol, ...], ...]
Cell = Tuple[int, int]


@dataclass(frozen=True)
class GameConfiguration:
    id: str
    name: str
    theme: GameTheme
    reels: int
    rows: int
    scatters_to_trigger: int
    description: str = ''
    symbol_values: Dict[Symbol, float] = field(default_factory=dict)

    @property
    def is_small_grid(self) -> bool:
        return self.reels <= 3

    def symbol_value(self, symbol: Symbol) -> float:
        return self.symbol_values.get(symbol, 0.0)


@dataclass(frozen=True)
class Payline:
    id: int
    indices: Tuple[int, ...]
    color: str


@dataclass(frozen=True)
class LineWin:
    payline_id: int
    symbol: Symbol
    count: int
    payout: int
    cells: Tuple[Cell, ...]


@dataclass
class WinResult:
    payout: int = 0
    winning_lines: List[int] = field(default_factory=list)
    winning_cells: List[Cell] = field(default_factory=list)
    scatters_found: int = 0
    win_tier: Optional[str] = None
    line_wins: List[LineWin] = field(default_factory=list)

    @property
    def is_big_win(self) -> bool:
        return self.win_tier is not None


@dataclass
class SpinSession:
    """Per-game spin bookkeeping, kept for the lifetime of the game table."""
    game_id: str
    bet_amount: int
    free_spins_remaining: int = 0
    total_free_spins: int = 0
    free_spins_won: int = 0
    free_spin_total_win: int = 0
    spins_without_bonus: int = 0
    grid: Optional[Grid] = None

    @property
    def is_free_spin(self) -> bool:
        return self.free_spins_remaining > 0

    @property
    def bonus_active(self) -> bool:
        return self.total_free_spins > 0

    def reset_bonus(self):
        self.free_spins_won = 0
        self.total_free_spins = 0
        self.free_spin_total_win = 0
