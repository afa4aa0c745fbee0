from typing import Dict, List

from fastapi import APIRouter, FastAPI, HTTPException, Query
import structlog

from cipher_stepper.errors import KeyStreamError
from cipher_stepper.keys import read_key_matrix, shorten
from cipher_stepper.planner import CharacterStepPlanner, HillStepPlanner
from cipher_stepper.session import DEFAULT_SPEED_MS, build_planner, hill_planner, vigenere_planner

from . import models

log = structlog.get_logger(
    processors=[
        structlog.processors.JSONRenderer(indent=2),
    ],
)

# Create the FastAPI app
app = FastAPI(title="Cipher Stepper Demo API")

# Create the router for API endpoints
router = APIRouter()

DEMOS: Dict[str, Dict[str, str]] = {
    "hill-help": {
        "cipher": "hill",
        "text": "HELP",
        "key": "[[3,3],[2,5]]",
        "description": "Two 2-letter blocks under a 2x2 key matrix.",
    },
    "hill-padding": {
        "cipher": "hill",
        "text": "Retreat now",
        "key": "[[6,24,1],[13,16,10],[20,17,15]]",
        "description": "3x3 key; the last block is padded with X.",
    },
    "vigenere-hello": {
        "cipher": "vigenere",
        "text": "HELLO",
        "key": "KEY",
        "description": "The key stream wraps after three letters.",
    },
    "vigenere-punctuation": {
        "cipher": "vigenere",
        "text": "Hello, World!",
        "key": "lemon",
        "description": "Spaces and punctuation do not consume key letters.",
    },
    "additive-caesar": {
        "cipher": "additive",
        "text": "Veni, vidi, vici",
        "key": "3",
        "description": "Caesar's own shift of three.",
    },
    "autokey-attack": {
        "cipher": "autokey",
        "text": "attack at dawn",
        "key": "16",
        "description": "Seeded with 16, then keyed by the plaintext itself.",
    },
}


def check_step(step: int, step_count: int) -> None:
    if step == 0 and step_count == 0:
        return
    if not (0 <= step < step_count):
        raise HTTPException(status_code=400, detail=f"Step {step} outside 0..{step_count - 1}")


def build_hill_response(planner: HillStepPlanner, key_is_fallback: bool, step: int) -> models.HillResponse:
    check_step(step, planner.step_count)
    view = planner.describe(step)
    return models.HillResponse(
        key_matrix=[list(row) for row in planner.result.key_matrix],
        key_is_fallback=key_is_fallback,
        prepared_text=planner.result.prepared_text,
        encrypted_text=planner.result.encrypted_text,
        step_count=planner.step_count,
        step=models.HillStepModel(
            step_index=view.step_index,
            step_count=view.step_count,
            title=view.title,
            block_index=view.block_index,
            phase=int(view.phase),
            phase_label=view.phase.label,
            letters=view.letters,
            numbers=list(view.numbers) if view.numbers is not None else None,
            raw_sums=list(view.raw_sums) if view.raw_sums is not None else None,
            encrypted=list(view.encrypted) if view.encrypted is not None else None,
            result=view.result,
            revealed_blocks=list(view.revealed_blocks),
        ),
    )


def build_char_response(planner: CharacterStepPlanner, step: int) -> models.CharResponse:
    check_step(step, planner.step_count)
    view = planner.describe(step)
    return models.CharResponse(
        cipher=planner.result.cipher,
        key=planner.result.key,
        ciphertext=planner.result.ciphertext,
        step_count=planner.step_count,
        step=models.CharStepModel(
            step_index=view.step_index,
            step_count=view.step_count,
            title=view.title,
            originals=list(view.originals),
            key_chars=list(view.key_chars),
            results=list(view.results),
            calculation=view.calculation,
        ),
    )


@router.get("/hill", response_model=models.HillResponse)
def hill(text: str = "", key: str = "", step: int = Query(0, ge=0)):
    """ Hill cipher step view. A malformed key falls back to [[0]]. """
    parsed = read_key_matrix(key)
    if parsed.is_fallback:
        log.warning("key matrix fallback", key=shorten(key), reason=parsed.reason)
    planner = hill_planner(text, parsed.matrix)
    log.info("hill", text_len=len(text), block_size=parsed.size, step=step, step_count=planner.step_count)
    return build_hill_response(planner, parsed.is_fallback, step)


@router.get("/vigenere", response_model=models.CharResponse)
def vigenere(text: str = "", key: str = "", step: int = Query(0, ge=0)):
    """ Vigenère cipher step view. The key must contain at least one letter. """
    try:
        planner = vigenere_planner(text, key)
    except KeyStreamError as e:
        log.warning("rejected key", key=key, error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    log.info("vigenere", text_len=len(text), key=planner.result.key, step=step, step_count=planner.step_count)
    return build_char_response(planner, step)


def build_demo_response(name: str) -> models.DemoResponse:
    demo = DEMOS[name]
    planner = build_planner(demo["cipher"], demo["text"], demo["key"])
    if isinstance(planner, HillStepPlanner):
        ciphertext = planner.result.encrypted_text
    else:
        ciphertext = planner.result.ciphertext
    return models.DemoResponse(
        name=name,
        cipher=demo["cipher"],
        text=demo["text"],
        key=demo["key"],
        speed_ms=DEFAULT_SPEED_MS[demo["cipher"]],
        ciphertext=ciphertext,
        description=demo["description"],
    )


@router.get("/demos", response_model=List[models.DemoResponse])
def list_demos():
    """ All demo inputs with their expected ciphertext. """
    return [build_demo_response(name) for name in DEMOS]


@router.get("/demos/{name}", response_model=models.DemoResponse)
def get_demo(name: str):
    """ One named demo input. """
    if name not in DEMOS:
        raise HTTPException(status_code=404, detail=f"Unknown demo: {name}")
    return build_demo_response(name)


# Include the router in the app (after all routes are defined)
app.include_router(router, prefix="/api")
