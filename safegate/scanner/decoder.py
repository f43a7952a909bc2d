"""Evasion-resistant decoder.

Given a text sample, decides whether it "looks encoded" and produces a bounded
set of candidate decodings (ROT13, Caesar shifts, base64 tokens, hex tokens)
for the inbound scanner to rescan.

Every loop here has a fixed ceiling: 25 Caesar shifts, ``token_cap`` tokens per
base64/hex layer. The worst-case cost of one inbound scan does not depend on
the shape of adversarial input.

The "looks encoded" thresholds in ``safegate.constants`` are empirical. Treat
them as tunable, not as meaningful boundaries.

IMPORT RULES:
  - ``import re2`` ONLY: ``import re`` is PROHIBITED in safegate/scanner/.
"""

from __future__ import annotations

import base64
import binascii
import string
from collections.abc import Iterator
from typing import Optional

import re2

from safegate.constants import (
    BASE64_DENSITY_MIN,
    CIPHER_RUN_MIN_LETTERS,
    CIPHER_SPACE_RATIO_MAX,
    CIPHER_VOWEL_RATIO_MAX,
    DECODE_TOKEN_CAP,
    ENCODED_SAMPLE_MIN_LENGTH,
    HEX_DENSITY_MIN,
    MIN_ENCODED_TOKEN_LENGTH,
    PRINTABLE_RATIO_MIN,
)

BASE64_ALPHABET: frozenset[str] = frozenset(string.ascii_letters + string.digits + "+/=")
HEX_ALPHABET: frozenset[str] = frozenset(string.hexdigits)
VOWELS: frozenset[str] = frozenset("aeiouAEIOU")

#: Provenance prefixes attached to labels of matches found under a decoding.
LAYER_ROT13 = "decoded_rot13"
LAYER_BASE64 = "decoded_base64"
LAYER_HEX = "decoded_hex"

_BASE64_TOKEN = re2.compile(r'[A-Za-z0-9+/]{%d,}={0,2}' % MIN_ENCODED_TOKEN_LENGTH)
_HEX_TOKEN = re2.compile(r'(?:0x)?([0-9a-fA-F]{%d,})' % MIN_ENCODED_TOKEN_LENGTH)
_ALPHA_RUN = re2.compile(r'[A-Za-z]+(?: [A-Za-z]+)*')

_PRINTABLE_BYTES: frozenset[int] = frozenset(range(0x20, 0x7F)) | {0x09, 0x0A, 0x0D}


def caesar_layer(shift: int) -> str:
    return f"decoded_caesar_{shift}"


# ---------------------------------------------------------------------------
# Ciphers
# ---------------------------------------------------------------------------


def caesar_shift(text: str, shift: int) -> str:
    """Shift ASCII letters back by ``shift`` positions (decodes a Caesar cipher).

    Non-letters are kept. ``caesar_shift(caesar_shift(t, k), 26 - k) == t``.
    """
    shift %= 26
    if shift == 0:
        return text
    lower = string.ascii_lowercase
    upper = string.ascii_uppercase
    table = str.maketrans(
        lower + upper,
        lower[-shift:] + lower[:-shift] + upper[-shift:] + upper[:-shift],
    )
    return text.translate(table)


def rot13(text: str) -> str:
    return caesar_shift(text, 13)


# ---------------------------------------------------------------------------
# Token extraction / decoding
# ---------------------------------------------------------------------------


def extract_base64_tokens(text: str, limit: int = DECODE_TOKEN_CAP) -> list[str]:
    """Return up to ``limit`` distinct base64-alphabet runs of 20+ chars, in order."""
    tokens: list[str] = []
    if limit <= 0:
        return tokens
    for match in _BASE64_TOKEN.finditer(text):
        token = match.group(0)
        if token not in tokens:
            tokens.append(token)
            if len(tokens) >= limit:
                break
    return tokens


def extract_hex_tokens(text: str, limit: int = DECODE_TOKEN_CAP) -> list[str]:
    """Return up to ``limit`` distinct even-length hex runs of 20+ digits, in order.

    A leading ``0x`` is dropped; odd-length runs are skipped.
    """
    tokens: list[str] = []
    if limit <= 0:
        return tokens
    for match in _HEX_TOKEN.finditer(text):
        token = match.group(1)
        if len(token) % 2 != 0 or token in tokens:
            continue
        tokens.append(token)
        if len(tokens) >= limit:
            break
    return tokens


def is_mostly_printable(data: bytes, threshold: float = PRINTABLE_RATIO_MIN) -> bool:
    """True when at least ``threshold`` of ``data`` is printable ASCII (tab/newline allowed)."""
    if not data:
        return False
    printable = sum(1 for byte in data if byte in _PRINTABLE_BYTES)
    return printable / len(data) >= threshold


def decode_base64_token(token: str) -> Optional[str]:
    """Decode a base64 token; None unless the bytes are mostly printable ASCII."""
    body = token.rstrip("=")
    padded = body + "=" * (-len(body) % 4)
    try:
        data = base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError):
        return None
    if not is_mostly_printable(data):
        return None
    return data.decode("ascii", errors="ignore")


def decode_hex_token(token: str) -> Optional[str]:
    """Decode a hex token; None unless the bytes are mostly printable ASCII."""
    try:
        data = bytes.fromhex(token)
    except ValueError:
        return None
    if not is_mostly_printable(data):
        return None
    return data.decode("ascii", errors="ignore")


# ---------------------------------------------------------------------------
# "Looks encoded" heuristic
# ---------------------------------------------------------------------------


def _alphabet_density(text: str, alphabet: frozenset[str]) -> float:
    if not text:
        return 0.0
    return sum(1 for ch in text if ch in alphabet) / len(text)


def _has_aligned_token(text: str) -> bool:
    for token in extract_base64_tokens(text, limit=DECODE_TOKEN_CAP):
        if len(token) % 4 == 0:
            return True
    return bool(extract_hex_tokens(text, limit=1))


def has_cipher_run(text: str) -> bool:
    """Detect a long alphabetic run with few vowels and few spaces.

    English prose runs ~38% vowels and ~18% spaces; substitution-cipher output
    (ROT13, Caesar) usually falls well below both.
    """
    for match in _ALPHA_RUN.finditer(text):
        run = match.group(0)
        letters = len(run) - run.count(" ")
        if letters < CIPHER_RUN_MIN_LETTERS:
            continue
        vowel_ratio = sum(1 for ch in run if ch in VOWELS) / letters
        space_ratio = run.count(" ") / len(run)
        if vowel_ratio < CIPHER_VOWEL_RATIO_MAX and space_ratio < CIPHER_SPACE_RATIO_MAX:
            return True
    return False


def looks_encoded(text: str) -> bool:
    """Heuristically classify whether ``text`` likely hides an encoded payload.

    Fires on any of:
      - the whole sample is (almost) base64 alphabet with length % 4 == 0
      - the whole sample is (almost) hex with even length
      - an embedded base64 token of aligned length, or an even-length hex token
      - a long low-vowel, low-space alphabetic run (substitution cipher)
    """
    sample = text.strip()
    if len(sample) < ENCODED_SAMPLE_MIN_LENGTH:
        return False

    if len(sample) % 2 == 0 and _alphabet_density(sample, HEX_ALPHABET) >= HEX_DENSITY_MIN:
        return True
    if len(sample) % 4 == 0 and _alphabet_density(sample, BASE64_ALPHABET) >= BASE64_DENSITY_MIN:
        return True
    if _has_aligned_token(sample):
        return True
    return has_cipher_run(sample)


# ---------------------------------------------------------------------------
# Candidate decodings
# ---------------------------------------------------------------------------


def candidate_decodings(text: str, token_cap: int = DECODE_TOKEN_CAP) -> Iterator[tuple[str, str]]:
    """Yield ``(layer, decoded_text)`` pairs in a fixed order.

    Order: ROT13, Caesar shifts 1–25 except 13, base64 tokens, hex tokens.
    Lazy, so a caller that reaches its match ceiling can stop without paying
    for the remaining layers.
    """
    yield LAYER_ROT13, rot13(text)

    for shift in range(1, 26):
        if shift == 13:
            continue
        yield caesar_layer(shift), caesar_shift(text, shift)

    for token in extract_base64_tokens(text, limit=token_cap):
        decoded = decode_base64_token(token)
        if decoded:
            yield LAYER_BASE64, decoded

    for token in extract_hex_tokens(text, limit=token_cap):
        decoded = decode_hex_token(token)
        if decoded:
            yield LAYER_HEX, decoded
