import logging
from collections import deque
from typing import Literal, Optional, Sequence

from rich.align import Align
from rich.console import Group, RenderableType
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cipher_stepper.models import PLACEHOLDER, CharStepView, HillPhase, HillStepView, KeyMatrix, PlaybackState
from cipher_stepper.playback import PlaybackView
from cipher_stepper.state_queue import SingleSlotQueue

LOG_BUFFER = deque(maxlen=5000)
LOG_LINES_VISIBLE = 5
LEVEL_STYLE = {
    logging.DEBUG: "dim",
    logging.INFO: "",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

COLORS = {
    "current": "bold yellow on black",
    "plaintext": {
        "pending": "blue",
        "revealed": "bright_blue",
    },
    "key": {
        "pending": "dim",
        "revealed": "magenta",
    },
    "ciphertext": {
        "pending": "dim",
        "revealed": "spring_green2",
    },
}

CONTROLS_HELP = "[space] play/pause  [n] forward  [b] back  [r] reset  [+/-] speed  [q] quit"

type CellType = Literal["plaintext", "key", "ciphertext"]


class UILogHandler(logging.Handler):
    def emit(self, record):
        msg = self.format(record)
        LOG_BUFFER.append((record.levelno, msg))


def get_ui_log_handler() -> UILogHandler:
    uih = UILogHandler()
    uih.setFormatter(logging.Formatter("%(asctime)s  %(levelname)s  %(message)s", "%H:%M:%S"))
    return uih


def render_log_panel(title: str, max_lines: int) -> Panel:
    """Render exactly max_lines log entries (cropped to width, no wrap)."""
    items = list(LOG_BUFFER)[-max_lines:]
    if len(items) < max_lines:
        items = [("", "")] * (max_lines - len(items)) + items

    grid = Table.grid(padding=(0, 0))
    grid.add_column(no_wrap=True, overflow="crop")
    for lvl, msg in items:
        style = LEVEL_STYLE.get(lvl, "")
        msg = escape(msg)
        grid.add_row(f"[{style}]{msg}[/{style}]" if style else msg)
    return Panel(grid, title=title, padding=(0, 1))


def styled(text: str, cell_type: CellType, is_current: bool = False) -> str:
    """Color one cell. Placeholders stay dim until they are revealed."""
    if is_current:
        style = COLORS["current"]
    elif text == PLACEHOLDER:
        style = COLORS[cell_type]["pending"]
    else:
        style = COLORS[cell_type]["revealed"]
    return f"[{style}]{escape(text)}[/{style}]"


def render_key_matrix(matrix: KeyMatrix, title: str = "Key Matrix") -> Panel:
    t = Table.grid(padding=(0, 2))
    for _ in range(len(matrix)):
        t.add_column(justify="right")
    for row in matrix:
        t.add_row(*(str(cell) for cell in row))
    return Panel(t, title=title, expand=False)


def render_controls(state: PlaybackState) -> Panel:
    status = "▶ Playing" if state.is_playing else "⏸ Paused"
    step = f"Step {state.current_step + 1} / {state.step_count}" if state.step_count else "Step 0 / 0"
    line = f"{status}  |  {step}  |  {state.speed_ms} ms"
    return Panel(Group(line, f"[dim]{escape(CONTROLS_HELP)}[/dim]"), title="Playback", padding=(0, 1))


def render_prepared_text(view: HillStepView) -> str:
    """Prepared text split into blocks, the current block highlighted."""
    size = len(view.key_matrix)
    blocks = [view.prepared_text[i:i + size] for i in range(0, len(view.prepared_text), size)]
    return "  ".join(
        styled(block, "plaintext", is_current=(i == view.block_index and not view.is_empty))
        for i, block in enumerate(blocks)
    )


def render_hill_phase(view: HillStepView) -> Table:
    t = Table(title=view.title, show_header=False, show_edge=False, padding=(0, 2))
    t.add_column("Var", style="cyan", no_wrap=True)
    t.add_column("Value", no_wrap=True)

    t.add_row("Block", " ".join(styled(c, "plaintext") for c in view.letters))
    if view.phase >= HillPhase.NUMERIC and view.numbers is not None:
        t.add_row("Position", " ".join(str(n) for n in view.numbers))
    if view.phase >= HillPhase.MULTIPLY and view.raw_sums is not None and view.encrypted is not None:
        t.add_row("K × P", " ".join(str(n) for n in view.raw_sums))
        t.add_row("mod 26", " ".join(str(n) for n in view.encrypted))
    if view.phase == HillPhase.RESULT and view.result is not None:
        t.add_row("Result", " ".join(styled(c, "ciphertext", is_current=True) for c in view.result))
    return t


def render_hill(view: HillStepView) -> RenderableType:
    if view.is_empty:
        return Panel("No letters to encrypt.", title="Hill Cipher", border_style="dim")

    header = Table.grid(padding=(0, 2))
    header.add_column()
    header.add_column()
    header.add_row(render_key_matrix(view.key_matrix), Panel(render_prepared_text(view), title="Prepared Text"))

    revealed = "  ".join(
        styled(block, "ciphertext", is_current=(i == view.block_index and view.phase == HillPhase.RESULT))
        for i, block in enumerate(view.revealed_blocks)
    )
    return Panel(
        Group(header, Align(render_hill_phase(view), align="center"), Panel(revealed, title="Encrypted Text")),
        title="Hill Cipher",
    )


def render_character_row(cells: Sequence[str], cell_type: CellType, current: int) -> list:
    return [styled(cell, cell_type, is_current=(i == current)) for i, cell in enumerate(cells)]


def render_characters(view: CharStepView) -> RenderableType:
    title = f"{view.cipher.capitalize()} Cipher"
    if view.is_empty:
        return Panel("No characters to encrypt.", title=title, border_style="dim")

    t = Table(title=view.title, show_header=False, show_edge=False, padding=(0, 0))
    t.add_column("Row", style="cyan", no_wrap=True, width=12)
    for _ in view.originals:
        t.add_column(justify="center", width=3, no_wrap=True)
    t.add_row("Plaintext", *render_character_row(view.originals, "plaintext", view.step_index))
    t.add_row("Key", *render_character_row(view.key_chars, "key", view.step_index))
    t.add_row("Ciphertext", *render_character_row(view.results, "ciphertext", view.step_index))

    return Panel(Group(t, Panel(escape(view.calculation), title="Calculation")), title=title)


def render(view: Optional[PlaybackView], log_lines: int = LOG_LINES_VISIBLE) -> RenderableType:
    """Render a playback view: the step, the controls, and the newest log lines."""
    if view is None:
        return Panel("Waiting for first update…", title="Cipher Stepper", border_style="dim")

    if isinstance(view.step, HillStepView):
        step_panel = render_hill(view.step)
    elif isinstance(view.step, CharStepView):
        step_panel = render_characters(view.step)
    else:
        raise ValueError(f"Invalid step view: {type(view.step).__name__}")

    parts = [step_panel, render_controls(view.state)]
    if log_lines > 0:
        parts.append(render_log_panel("Logs", log_lines))
    return Group(*parts)


def ui_loop(state_queue: SingleSlotQueue[PlaybackView], log_lines: int = LOG_LINES_VISIBLE) -> Optional[PlaybackView]:
    """Render views until the queue closes. Returns the last view shown."""
    last_view = None
    with Live(render(None, log_lines), refresh_per_second=30, screen=False) as live:
        while True:
            view = state_queue.get()
            if view is None:
                break
            last_view = view
            live.update(render(view, log_lines))
    return last_view
