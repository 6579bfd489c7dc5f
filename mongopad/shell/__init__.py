"""Shell-syntax query parsing: tokenizer, literal normalizer, argument parser, chain scanner."""

from __future__ import annotations

from .chain import apply_post_path, parse_post_path, scan_modifiers
from .literals import parse_arguments, parse_literal
from .models import (
    ChainedModifier,
    FieldSegment,
    IndexSegment,
    ParsedCall,
    PathSegment,
    TargetKind,
)
from .normalize import normalize_literals
from .tokenizer import clean_query, scan_arguments, tokenize

__all__ = [
    "ChainedModifier",
    "FieldSegment",
    "IndexSegment",
    "ParsedCall",
    "PathSegment",
    "TargetKind",
    "apply_post_path",
    "clean_query",
    "normalize_literals",
    "parse_arguments",
    "parse_literal",
    "parse_post_path",
    "scan_arguments",
    "scan_modifiers",
    "tokenize",
]
