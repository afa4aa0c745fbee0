from typing import List, Literal, Optional

from pydantic import BaseModel

CipherName = Literal["hill", "vigenere", "additive", "autokey"]


class HillStepModel(BaseModel):
    step_index: int
    step_count: int
    title: str
    block_index: int
    phase: int
    phase_label: str
    letters: str
    numbers: Optional[List[int]] = None
    raw_sums: Optional[List[int]] = None
    encrypted: Optional[List[int]] = None
    result: Optional[str] = None
    revealed_blocks: List[str]


class HillResponse(BaseModel):
    key_matrix: List[List[int]]
    key_is_fallback: bool
    prepared_text: str
    encrypted_text: str
    step_count: int
    step: HillStepModel


class CharStepModel(BaseModel):
    step_index: int
    step_count: int
    title: str
    originals: List[str]
    key_chars: List[str]
    results: List[str]
    calculation: str


class CharResponse(BaseModel):
    cipher: CipherName
    key: str
    ciphertext: str
    step_count: int
    step: CharStepModel


class DemoResponse(BaseModel):
    name: str
    cipher: CipherName
    text: str
    key: str
    speed_ms: int
    ciphertext: str
    description: str
