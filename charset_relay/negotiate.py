"""
Charset negotiation and fallback conversion.

Responsibilities:
- probe whether a charset name can be used for conversion
- guess candidate charsets for a buffer via charset-normalizer
- try candidate charsets in order, keeping the first clean conversion
- apply the per-direction policy to remote and local messages
"""

from __future__ import annotations

import codecs
import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from charset_normalizer import from_bytes

from .models import Direction, NegotiationConfig
from .rules import CONVERT_BUFFER_LEN

LOGGER = logging.getLogger(__name__)


class ConversionStatus(str, Enum):
    OK = "ok"
    TRUNCATED = "truncated"  # output cut to capacity, still a success
    FAILED = "failed"


@dataclass(frozen=True)
class ConversionAttempt:
    source: str
    status: ConversionStatus
    data: bytes = b""

    @property
    def succeeded(self) -> bool:
        return self.status is not ConversionStatus.FAILED


@dataclass(frozen=True)
class NegotiationResult:
    """
    Outcome of negotiating one message.

    When converted is False, data is the original buffer, untouched.
    """

    data: bytes
    converted: bool
    source_encoding: Optional[str] = None
    target_encoding: Optional[str] = None
    detected: Tuple[str, ...] = ()
    attempts: Tuple[ConversionAttempt, ...] = ()


def canonical_name(name: str) -> Optional[str]:
    try:
        return codecs.lookup(name).name
    except (LookupError, ValueError):
        return None


# codecs that resolve as text encodings but rewrite content instead of mapping a charset
_TRANSFORM_CODECS = frozenset(
    {"undefined", "unicode-escape", "raw-unicode-escape", "idna", "punycode"}
)


def can_resolve(name: str) -> bool:
    """True if `name` is a text encoding usable for both decoding and encoding."""
    try:
        info = codecs.lookup(name)
        # bytes-to-bytes codecs such as base64 resolve but cannot carry text
        if not getattr(info, "_is_text_encoding", True):
            return False
        if info.name.replace("_", "-") in _TRANSFORM_CODECS:
            return False
        return "a".encode(name).decode(name) == "a"
    except (LookupError, UnicodeError, ValueError):
        return False


def _truncate(text: str, target: str, capacity: int) -> bytes:
    # keep whole encoded characters only
    encoder = codecs.getincrementalencoder(target)()
    out = bytearray()
    for char in text:
        chunk = encoder.encode(char)
        if len(out) + len(chunk) > capacity:
            break
        out += chunk
    return bytes(out)


def convert_charset(
    source: str, target: str, data: bytes, capacity: int = CONVERT_BUFFER_LEN
) -> ConversionAttempt:
    """Convert `data` from `source` to `target` with strict error handling."""
    try:
        text = data.decode(source)
        converted = text.encode(target)
    except (LookupError, UnicodeError) as exc:
        LOGGER.debug("Conversion %s -> %s failed: %s", source, target, exc)
        return ConversionAttempt(source=source, status=ConversionStatus.FAILED)

    if len(converted) <= capacity:
        return ConversionAttempt(source=source, status=ConversionStatus.OK, data=converted)

    return ConversionAttempt(
        source=source,
        status=ConversionStatus.TRUNCATED,
        data=_truncate(text, target, capacity),
    )


def convert_with_fallback(
    candidates: Sequence[str],
    target: str,
    data: bytes,
    capacity: int = CONVERT_BUFFER_LEN,
) -> NegotiationResult:
    """
    Try each candidate source charset in order; the first clean conversion wins.

    Attempts never share state, so a failed candidate leaves nothing behind.
    A candidate naming the same codec as an earlier one is skipped.
    If no candidate converts (including the empty list), the original
    buffer is returned with converted=False.
    """
    attempts: List[ConversionAttempt] = []
    tried = set()

    for source in candidates:
        key = canonical_name(source) or source.lower()
        if key in tried:
            continue
        tried.add(key)

        attempt = convert_charset(source, target, data, capacity)
        attempts.append(attempt)
        if not attempt.succeeded:
            continue

        if attempt.status is ConversionStatus.TRUNCATED:
            LOGGER.warning(
                "Conversion %s -> %s exceeded %d bytes, output truncated",
                source,
                target,
                capacity,
            )
        return NegotiationResult(
            data=attempt.data,
            converted=True,
            source_encoding=source,
            target_encoding=target,
            attempts=tuple(attempts),
        )

    LOGGER.debug(
        "No candidate of %s converts to %s, passing %d bytes through",
        list(candidates),
        target,
        len(data),
    )
    return NegotiationResult(
        data=data,
        converted=False,
        target_encoding=target,
        attempts=tuple(attempts),
    )


class CharsetDetector:
    """
    Ranks plausible source charsets for a buffer using charset-normalizer.

    One detector is owned by one negotiator and must not be used from
    several threads at once.
    """

    def __init__(self, *, steps: int = 5, chunk_size: int = 512, threshold: float = 0.2) -> None:
        self.steps = steps
        self.chunk_size = chunk_size
        self.threshold = threshold
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def detect(self, data: bytes) -> List[str]:
        if self._closed:
            raise RuntimeError("Charset detector is closed")
        if not data:
            return []

        matches = from_bytes(
            data,
            steps=self.steps,
            chunk_size=self.chunk_size,
            threshold=self.threshold,
        )
        guessed = [match.encoding for match in matches]
        if not guessed:
            LOGGER.debug("Charset detection inconclusive for %d bytes", len(data))
        return guessed

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "CharsetDetector":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class CharsetNegotiator:
    """
    Applies a NegotiationConfig to messages in both directions.

    Remote messages are converted from the remote charsets to the preferred
    local charset; local messages from the local charsets to the preferred
    remote charset, unless the config is inbound_only. With guessing on,
    detected charsets are tried before the configured ones.
    After close(), messages pass through unconverted.
    """

    def __init__(
        self,
        config: NegotiationConfig,
        *,
        detector: Optional[CharsetDetector] = None,
        capacity: int = CONVERT_BUFFER_LEN,
    ) -> None:
        self.config = config
        self.capacity = capacity
        self._lock = threading.Lock()
        self._closed = False
        self._detector = None
        if config.guess:
            self._detector = detector if detector is not None else CharsetDetector()

        LOGGER.info(
            "Charset negotiation started: local=%s remote=%s guess=%s inbound_only=%s",
            ",".join(config.local_charsets),
            ",".join(config.remote_charsets),
            config.guess,
            config.inbound_only,
        )

    def route(self, direction: Direction) -> Tuple[Tuple[str, ...], str]:
        """Configured source candidates and target charset for a direction."""
        if direction is Direction.INBOUND:
            return self.config.remote_charsets, self.config.local_preferred
        return self.config.local_charsets, self.config.remote_preferred

    def negotiate(self, direction: Direction, data: bytes) -> NegotiationResult:
        with self._lock:
            if self._closed:
                LOGGER.debug("Negotiator is closed, passing %d bytes through", len(data))
                return NegotiationResult(data=data, converted=False)
            if direction is Direction.OUTBOUND and self.config.inbound_only:
                return NegotiationResult(data=data, converted=False)

            configured, target = self.route(direction)
            detected: Tuple[str, ...] = ()
            if self._detector is not None:
                detected = tuple(self._detector.detect(data))

            result = convert_with_fallback(detected + configured, target, data, self.capacity)
            return replace(result, detected=detected)

    def on_remote_message(self, data: bytes) -> NegotiationResult:
        return self.negotiate(Direction.INBOUND, data)

    def on_local_message(self, data: bytes) -> NegotiationResult:
        return self.negotiate(Direction.OUTBOUND, data)

    def close(self) -> None:
        with self._lock:
            self._closed = True
        if self._detector is not None:
            self._detector.close()
        LOGGER.info("Charset negotiation stopped")

    def __enter__(self) -> "CharsetNegotiator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
