from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Direction(str, Enum):
    INBOUND = "inbound"  # remote -> local
    OUTBOUND = "outbound"  # local -> remote


class NegotiationConfig(BaseModel):
    """
    Validated charset lists and flags.

    Build it through charset_relay.config.build_config, which checks that
    every name resolves; the model itself only guards against empty lists.
    """

    model_config = ConfigDict(frozen=True)

    local_charsets: Tuple[str, ...] = Field(min_length=1)
    remote_charsets: Tuple[str, ...] = Field(min_length=1)
    guess: bool = False
    inbound_only: bool = False

    @property
    def local_preferred(self) -> str:
        return self.local_charsets[0]

    @property
    def remote_preferred(self) -> str:
        return self.remote_charsets[0]


class RelayedMessage(BaseModel):
    sha256: str
    encoding: Optional[str] = None
    content_b64: str


class AttemptItem(BaseModel):
    source: str
    status: str


class RelayReport(BaseModel):
    direction: Direction
    converted: bool
    source_encoding: Optional[str] = None
    target_encoding: Optional[str] = None
    detected: List[str] = Field(default_factory=list)
    attempts: List[AttemptItem] = Field(default_factory=list)


class RelayResponse(BaseModel):
    message: RelayedMessage
    report: RelayReport


class CharsetsResponse(BaseModel):
    local_charsets: List[str]
    remote_charsets: List[str]
    guess: bool
    inbound_only: bool


class HealthResponse(BaseModel):
    ok: bool = True
