import logging
import threading
from typing import Callable, Dict, Optional

import click
import requests
from rich.console import Console

from cipher_stepper.errors import KeyStreamError, PlaybackClosedError
from cipher_stepper.keys import load_text
from cipher_stepper.models import PlaybackState
from cipher_stepper.planner import StepPlanner
from cipher_stepper.playback import PlaybackController, PlaybackView
from cipher_stepper.session import CIPHER_NAMES, DEFAULT_SPEED_MS, build_planner
from cipher_stepper.state_queue import SingleSlotQueue
from cipher_stepper.ui import LOG_LINES_VISIBLE, UILogHandler, get_ui_log_handler, render, ui_loop

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://127.0.0.1:8000"
SPEED_STEP_MS = 250
MIN_KEYBOARD_SPEED_MS = 250

KEY_BINDINGS: Dict[str, Callable[[PlaybackController], object]] = {
    " ": PlaybackController.toggle_play,
    "p": PlaybackController.toggle_play,
    "n": PlaybackController.step_forward,
    "l": PlaybackController.step_forward,
    "\x1b[C": PlaybackController.step_forward,  # Right arrow.
    "b": PlaybackController.step_backward,
    "h": PlaybackController.step_backward,
    "\x1b[D": PlaybackController.step_backward,  # Left arrow.
    "r": PlaybackController.reset,
    "+": lambda controller: controller.set_speed(max(controller.speed_ms - SPEED_STEP_MS, MIN_KEYBOARD_SPEED_MS)),
    "=": lambda controller: controller.set_speed(max(controller.speed_ms - SPEED_STEP_MS, MIN_KEYBOARD_SPEED_MS)),
    "-": lambda controller: controller.set_speed(controller.speed_ms + SPEED_STEP_MS),
}
QUIT_KEYS = ("q", "Q", "\x1b")


def configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("cipher_stepper")
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not any(isinstance(h, UILogHandler) for h in package_logger.handlers):
        package_logger.addHandler(get_ui_log_handler())


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs for every playback command")
def cli(verbose: bool):
    configure_logging(verbose)


def read_keys(controller: PlaybackController, getchar: Callable[[], str] = click.getchar) -> None:
    """Translate key presses into playback commands until quit or close."""
    try:
        while not controller.closed:
            key = getchar()
            if key in QUIT_KEYS:
                break
            action = KEY_BINDINGS.get(key)
            if action is None:
                continue
            action(controller)
    except (KeyboardInterrupt, EOFError, PlaybackClosedError):
        pass
    finally:
        controller.close()


def show_step(planner: StepPlanner, step: int, speed_ms: int, console: Optional[Console] = None) -> None:
    """Print a single frame without starting the clock."""
    if planner.step_count and not (1 <= step <= planner.step_count):
        raise click.BadParameter(f"must be between 1 and {planner.step_count}", param_hint="--step")
    index = max(step - 1, 0) if planner.step_count else 0
    state = PlaybackState(step_count=planner.step_count, current_step=index, speed_ms=speed_ms)
    view = PlaybackView(state=state, step=planner.describe(index))
    (console or Console()).print(render(view, log_lines=0))


def run_playback(planner: StepPlanner, speed_ms: int, interactive: bool) -> Optional[PlaybackView]:
    """Animate a planner in the terminal. Returns the last view rendered."""
    state_queue: SingleSlotQueue[PlaybackView] = SingleSlotQueue()
    on_finish = None if interactive else state_queue.close

    with PlaybackController(planner, speed_ms=speed_ms, state_queue=state_queue, on_finish=on_finish) as controller:
        if interactive:
            reader = threading.Thread(target=read_keys, args=(controller,), name="key-reader", daemon=True)
            reader.start()
        else:
            controller.play()
            if not controller.is_playing:
                logger.info("Nothing to play")
                state_queue.close()

        try:
            last_view = ui_loop(state_queue, LOG_LINES_VISIBLE)
        except KeyboardInterrupt:
            controller.close()
            last_view = None

    logger.debug(f"Playback closed after {state_queue.published} published views")
    return last_view


def visualize(planner: StepPlanner, speed: int, step: Optional[int], interactive: bool, ciphertext: str) -> None:
    if step is not None:
        show_step(planner, step, speed)
    else:
        run_playback(planner, speed, interactive)
    click.echo(ciphertext)


def resolve_text(text: Optional[str], text_path: Optional[str]) -> str:
    if text_path is not None:
        return load_text(text_path)
    return text or ""


def playback_options(cipher: str):
    """Options shared by every cipher command."""
    def decorator(fn):
        fn = click.option("--interactive", "-i", is_flag=True, help="Control playback with the keyboard")(fn)
        fn = click.option("--step", "-s", type=int, default=None, help="Print a single step (1-based) and exit")(fn)
        fn = click.option("--speed", type=click.IntRange(min=1), default=DEFAULT_SPEED_MS[cipher], show_default=True, help="Milliseconds per step")(fn)
        fn = click.option("--text-path", type=click.Path(exists=True, dir_okay=False), default=None, help="Read plaintext from a file")(fn)
        fn = click.option("--text", "-t", default="", help="Plaintext to encrypt")(fn)
        return fn
    return decorator


@cli.command()
@click.option("--key", "-k", required=True, help='Key matrix as JSON, e.g. "[[3,3],[2,5]]"')
@playback_options("hill")
def hill(key: str, text: str, text_path: Optional[str], speed: int, step: Optional[int], interactive: bool):
    """Animate the Hill cipher block by block."""
    planner = build_planner("hill", resolve_text(text, text_path), key)
    visualize(planner, speed, step, interactive, planner.result.encrypted_text)


@cli.command()
@click.option("--key", "-k", required=True, help="Key word; only its letters are used")
@playback_options("vigenere")
def vigenere(key: str, text: str, text_path: Optional[str], speed: int, step: Optional[int], interactive: bool):
    """Animate the Vigenère cipher character by character."""
    try:
        planner = build_planner("vigenere", resolve_text(text, text_path), key)
    except KeyStreamError as e:
        raise click.BadParameter(str(e), param_hint="--key")
    visualize(planner, speed, step, interactive, planner.result.ciphertext)


@cli.command()
@click.option("--shift", "-k", type=int, required=True, help="Shift applied to every letter")
@playback_options("additive")
def additive(shift: int, text: str, text_path: Optional[str], speed: int, step: Optional[int], interactive: bool):
    """Animate the additive (Caesar) cipher."""
    planner = build_planner("additive", resolve_text(text, text_path), str(shift))
    visualize(planner, speed, step, interactive, planner.result.ciphertext)


@cli.command()
@click.option("--seed", "-k", type=int, required=True, help="Shift applied to the first letter")
@playback_options("autokey")
def autokey(seed: int, text: str, text_path: Optional[str], speed: int, step: Optional[int], interactive: bool):
    """Animate the autokey cipher seeded with an integer shift."""
    planner = build_planner("autokey", resolve_text(text, text_path), str(seed))
    visualize(planner, speed, step, interactive, planner.result.ciphertext)


def fetch_demo_data(endpoint: str, name: str) -> dict:
    """Fetch the named demo inputs from the demo API."""
    url = f"{endpoint.rstrip('/')}/api/demos/{name}"
    response = requests.get(url, timeout=10)
    if response.status_code != 200:
        raise click.ClickException(f"Failed to get {url}: {response.status_code} {response.text}")
    data = response.json()
    if data.get("cipher") not in CIPHER_NAMES:
        raise click.ClickException(f"Demo {name} has unknown cipher {data.get('cipher')!r}")
    return data


@cli.command()
@click.argument("name")
@click.option("--endpoint", "-e", default=DEFAULT_ENDPOINT, show_default=True, help="Demo API base URL")
@click.option("--interactive", "-i", is_flag=True, help="Control playback with the keyboard")
def demo(name: str, endpoint: str, interactive: bool):
    """Run a named demo fetched from the demo API."""
    data = fetch_demo_data(endpoint, name)
    cipher = data["cipher"]
    try:
        planner = build_planner(cipher, data["text"], data["key"])
    except KeyStreamError as e:
        raise click.ClickException(f"Demo {name} has an unusable key: {e}")
    speed = data.get("speed_ms") or DEFAULT_SPEED_MS[cipher]
    run_playback(planner, speed, interactive)
    click.echo(data.get("ciphertext", ""))


@cli.command("demo-api")
@click.option("--host", default="127.0.0.1", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to bind the server to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def demo_api(host: str, port: int, reload: bool):
    """Start the demo API server that serves step views as JSON."""
    import uvicorn
    from stepper_api.api import app

    click.echo(f"Starting demo API server on http://{host}:{port}")
    click.echo("Available endpoints:")
    click.echo("  - GET  /api/hill?text=&key=&step=      - Hill step view")
    click.echo("  - GET  /api/vigenere?text=&key=&step=  - Vigenère step view")
    click.echo("  - GET  /api/demos                      - List demo inputs")
    click.echo("  - GET  /api/demos/{name}               - One demo input")
    click.echo("\nPress Ctrl+C to stop the server")

    if reload:
        uvicorn.run("stepper_api.api:app", host=host, port=port, reload=True)
    else:
        uvicorn.run(app, host=host, port=port, reload=False)


if __name__ == "__main__":
    cli()
