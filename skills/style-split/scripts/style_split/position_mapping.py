"""
ABOUTME: Maps positions in split (line-detected) text back to the original text
ABOUTME: Forward greedy alignment with configurable fallback and an id-keyed map store
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .common import DEFAULT_MAX_WARNINGS, debug_default, log_debug, log_warning

COMPONENT = 'PositionMapping'

# Approximate storage cost reported by get_stats
BYTES_PER_POSITION = 4
BYTES_PER_MAP_OVERHEAD = 50


class PositionFallbackStrategy(str, Enum):
    """What to record for an output character with no match in the original"""
    SPLIT_POSITION = "splitPosition"    # the output index itself
    LAST_KNOWN = "lastKnown"            # repeat the previous mapped index
    INTERPOLATED = "interpolated"       # reserved; behaves like SPLIT_POSITION


@dataclass
class PositionMappingConfig:
    debug: bool = field(default_factory=debug_default)
    max_warnings: int = DEFAULT_MAX_WARNINGS
    enable_validation: bool = True
    fallback_strategy: PositionFallbackStrategy = PositionFallbackStrategy.SPLIT_POSITION


@dataclass
class PositionMappingResult:
    """Outcome of build_map"""
    position_map: List[int]
    original_text: str
    reconstructed_text: str
    success: bool
    mapped_character_count: int
    warning_count: int
    exact_match: bool
    processing_time: float = 0.0     # milliseconds
    error: Optional[str] = None


@dataclass
class PositionMappingStats:
    total_maps: int
    memory_usage: int                # bytes, approximate
    largest_map_size: int
    average_map_size: float
    element_ids: List[str]


class PositionMappingService:
    """
    Builds and stores position maps keyed by element id.

    Stored maps are copied on the way in and on the way out, so callers can
    never alias the stored list.
    """

    def __init__(self, config: Optional[PositionMappingConfig] = None):
        self.config = config or PositionMappingConfig()
        self._maps: Dict[str, List[int]] = {}

    def _resolve_config(self, overrides: dict) -> PositionMappingConfig:
        return replace(self.config, **overrides) if overrides else self.config

    # ============================================================
    # Alignment
    # ============================================================

    def build_map(self, original_text: str, split_fragments: Sequence[str],
                  **overrides) -> PositionMappingResult:
        """
        Align the concatenated split fragments against the original text.

        Identical texts get the identity map. Otherwise a cursor walks the
        original text: each output character is matched to the first equal
        character at or after the cursor, and the cursor moves past it.
        Characters without a match take the configured fallback position and
        count as a warning; only the first max_warnings are logged.

        Args:
            original_text: Source text the positions refer to
            split_fragments: Line texts produced by segmentation, in order
            **overrides: PositionMappingConfig fields for this call

        Returns:
            PositionMappingResult; success=False only on an internal error
        """
        start = time.perf_counter()
        original_text = original_text or ''
        reconstructed = ''
        try:
            config = self._resolve_config(overrides)
            reconstructed = ''.join(split_fragments or [])
            log_debug(COMPONENT, f"Building map: {len(original_text)} original chars, "
                                 f"{len(reconstructed)} split chars", config.debug)

            if reconstructed == original_text:
                identity = list(range(len(original_text)))
                log_debug(COMPONENT, f"Exact match, identity map ({len(identity)} chars)",
                          config.debug)
                return PositionMappingResult(
                    position_map=identity,
                    original_text=original_text,
                    reconstructed_text=reconstructed,
                    success=True,
                    mapped_character_count=len(identity),
                    warning_count=0,
                    exact_match=True,
                    processing_time=_elapsed_ms(start),
                )

            position_map: List[int] = []
            cursor = 0
            warnings = 0
            for split_index, char in enumerate(reconstructed):
                found = original_text.find(char, cursor) if cursor < len(original_text) else -1
                if found != -1:
                    position_map.append(found)
                    cursor = found + 1
                    continue

                fallback = self._fallback_position(
                    split_index, cursor, position_map, config.fallback_strategy)
                position_map.append(fallback)
                if warnings < config.max_warnings:
                    log_debug(COMPONENT, f"No match for {char!r} at split position "
                                         f"{split_index}, using fallback {fallback}",
                              config.debug)
                warnings += 1

            if config.enable_validation:
                self._validate(position_map, len(original_text), config)

            processing_time = _elapsed_ms(start)
            log_debug(COMPONENT, f"Map built: {len(position_map)} positions, "
                                 f"{warnings} warnings, {processing_time:.2f}ms", config.debug)
            return PositionMappingResult(
                position_map=position_map,
                original_text=original_text,
                reconstructed_text=reconstructed,
                success=True,
                mapped_character_count=len(position_map),
                warning_count=warnings,
                exact_match=False,
                processing_time=processing_time,
            )
        except Exception as e:
            log_warning(COMPONENT, f"Failed to build position map: {e}")
            return PositionMappingResult(
                position_map=[],
                original_text=original_text,
                reconstructed_text=reconstructed,
                success=False,
                mapped_character_count=0,
                warning_count=0,
                exact_match=False,
                processing_time=_elapsed_ms(start),
                error=str(e),
            )

    @staticmethod
    def _fallback_position(split_index: int, cursor: int, position_map: List[int],
                           strategy: PositionFallbackStrategy) -> int:
        if strategy == PositionFallbackStrategy.LAST_KNOWN:
            return position_map[-1] if position_map else cursor
        # INTERPOLATED is reserved and currently maps like SPLIT_POSITION
        return split_index

    def _validate(self, position_map: List[int], original_length: int,
                  config: PositionMappingConfig) -> int:
        """Log positions outside [0, original_length); returns how many."""
        invalid = 0
        for index, position in enumerate(position_map):
            if position < 0 or position >= original_length:
                if invalid < config.max_warnings:
                    log_debug(COMPONENT, f"Invalid position at index {index}: {position} "
                                         f"(expected 0-{original_length - 1})", config.debug)
                invalid += 1
        if invalid:
            log_debug(COMPONENT, f"Validation found {invalid} out-of-range positions",
                      config.debug)
        return invalid

    # ============================================================
    # Storage
    # ============================================================

    def store(self, element_id: str, position_map: Sequence[int]) -> bool:
        """Store a copy of position_map under element_id (last write wins)."""
        try:
            self._maps[element_id] = list(position_map)
        except TypeError as e:
            log_warning(COMPONENT, f"Failed to store map for {element_id}: {e}")
            return False
        log_debug(COMPONENT, f"Stored map for {element_id} ({len(position_map)} positions)",
                  self.config.debug)
        return True

    def get(self, element_id: str) -> List[int]:
        """Copy of the stored map, or [] when none is stored."""
        stored = self._maps.get(element_id)
        if stored is None:
            log_debug(COMPONENT, f"No map stored for {element_id}", self.config.debug)
            return []
        return list(stored)

    def has(self, element_id: str) -> bool:
        return element_id in self._maps

    def delete(self, element_id: str) -> bool:
        existed = self._maps.pop(element_id, None) is not None
        if existed:
            log_debug(COMPONENT, f"Deleted map for {element_id}", self.config.debug)
        return existed

    def clear_all(self) -> int:
        count = len(self._maps)
        self._maps.clear()
        log_debug(COMPONENT, f"Cleared all maps ({count} removed)", self.config.debug)
        return count

    def map_position(self, element_id: str, split_index: int) -> int:
        """Original index for split_index; split_index itself when unmapped."""
        stored = self._maps.get(element_id)
        if not stored or split_index < 0 or split_index >= len(stored):
            return split_index
        return stored[split_index]

    def get_stats(self) -> PositionMappingStats:
        element_ids = list(self._maps.keys())
        sizes = [len(self._maps[element_id]) for element_id in element_ids]
        total = len(sizes)
        average = sum(sizes) / total if total else 0.0
        return PositionMappingStats(
            total_maps=total,
            memory_usage=sum(sizes) * BYTES_PER_POSITION + total * BYTES_PER_MAP_OVERHEAD,
            largest_map_size=max(sizes, default=0),
            average_map_size=round(average, 2),
            element_ids=element_ids,
        )

    def dispose(self) -> None:
        self.clear_all()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0
