"""Core dataclasses shared by the shell-syntax parsing stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Tuple, Union


class TargetKind(str, Enum):
    """Call shapes recognised at the start of a query."""

    COLLECTION_METHOD = "collection_method"
    GET_COLLECTION_METHOD = "get_collection_method"
    RUN_COMMAND = "run_command"
    ADMIN_COMMAND = "admin_command"
    CURRENT_OP = "current_op"

    @property
    def is_admin(self) -> bool:
        return self in (TargetKind.RUN_COMMAND, TargetKind.ADMIN_COMMAND, TargetKind.CURRENT_OP)


@dataclass(frozen=True, slots=True)
class ParsedCall:
    """Primary call located by the tokenizer."""

    target_kind: TargetKind
    method: str
    args_raw: str
    remainder: str
    collection: str | None = None


@dataclass(frozen=True, slots=True)
class ChainedModifier:
    """A `.name(args)` call trailing the primary call."""

    method: str
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class FieldSegment:
    """Property access in a post-process path."""

    name: str


@dataclass(frozen=True, slots=True)
class IndexSegment:
    """Array index access in a post-process path."""

    index: int


PathSegment = Union[FieldSegment, IndexSegment]


__all__ = [
    "ChainedModifier",
    "FieldSegment",
    "IndexSegment",
    "ParsedCall",
    "PathSegment",
    "TargetKind",
]
