"""
ABOUTME: Registration and notification of split-complete callbacks keyed by element id
ABOUTME: Callback failures are caught and recorded so one consumer cannot break the pipeline
"""

import inspect
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence

from .common import DEFAULT_MAX_CALLBACKS, SplitType, debug_default, log_debug, log_warning

COMPONENT = 'SplitCallbacks'

# (units, split_type) -> None
SplitCompleteCallback = Callable[[List, SplitType], None]


@dataclass
class CallbackConfig:
    debug: bool = field(default_factory=debug_default)
    max_callbacks: int = DEFAULT_MAX_CALLBACKS
    enable_validation: bool = True


@dataclass
class NotificationResult:
    """Outcome of one notify call"""
    success: bool
    element_id: str
    element_count: int
    split_type: SplitType
    execution_time: float = 0.0      # milliseconds
    error: Optional[str] = None


@dataclass
class CallbackManagerStats:
    total_callbacks: int
    element_ids: List[str]
    total_notifications: int
    successful_notifications: int
    failed_notifications: int
    average_execution_time: float    # milliseconds


class SplitCallbackManager:
    """One completion callback per element id; re-registering replaces it."""

    def __init__(self, config: Optional[CallbackConfig] = None):
        self.config = config or CallbackConfig()
        self._callbacks: Dict[str, SplitCompleteCallback] = {}
        self._reset_stats()

    def _reset_stats(self) -> None:
        self._total_notifications = 0
        self._successful = 0
        self._failed = 0
        self._total_execution_time = 0.0

    def _resolve_config(self, overrides: dict) -> CallbackConfig:
        return replace(self.config, **overrides) if overrides else self.config

    def _validate(self, callback, config: CallbackConfig) -> bool:
        if not config.enable_validation:
            return True
        if not callable(callback):
            log_debug(COMPONENT, "Invalid callback: not callable", config.debug)
            return False
        try:
            signature = inspect.signature(callback)
        except (TypeError, ValueError):
            log_debug(COMPONENT, "Invalid callback: signature unavailable", config.debug)
            return False

        positional = 0
        for param in signature.parameters.values():
            if param.default is not inspect.Parameter.empty:
                continue
            if param.kind in (inspect.Parameter.POSITIONAL_ONLY,
                              inspect.Parameter.POSITIONAL_OR_KEYWORD):
                positional += 1
            elif param.kind == inspect.Parameter.KEYWORD_ONLY:
                log_debug(COMPONENT, f"Invalid callback: required keyword '{param.name}'",
                          config.debug)
                return False
        if positional != 2:
            log_debug(COMPONENT, f"Invalid callback signature: expected 2 parameters, "
                                 f"got {positional}", config.debug)
            return False
        return True

    def register(self, element_id: str, callback: SplitCompleteCallback, **overrides) -> bool:
        """
        Register callback for element_id.

        Rejected when element_id is empty, when validation is on and the
        callback does not take exactly two positional parameters, or when
        max_callbacks distinct ids are already registered and element_id is
        not one of them.
        """
        config = self._resolve_config(overrides)
        if not element_id:
            log_debug(COMPONENT, "Registration failed: empty element id", config.debug)
            return False
        if not self._validate(callback, config):
            return False
        if len(self._callbacks) >= config.max_callbacks and element_id not in self._callbacks:
            log_debug(COMPONENT, f"Registration failed: maximum callbacks reached "
                                 f"({config.max_callbacks})", config.debug)
            return False

        self._callbacks[element_id] = callback
        log_debug(COMPONENT, f"Registered callback for {element_id} "
                             f"({len(self._callbacks)} total)", config.debug)
        return True

    def unregister(self, element_id: str) -> bool:
        existed = self._callbacks.pop(element_id, None) is not None
        if existed:
            log_debug(COMPONENT, f"Unregistered callback for {element_id} "
                                 f"({len(self._callbacks)} remaining)", self.config.debug)
        return existed

    def has(self, element_id: str) -> bool:
        return element_id in self._callbacks

    def notify(self, element_id: str, units: Sequence, split_type: SplitType,
               **overrides) -> NotificationResult:
        """
        Invoke the callback registered for element_id with (units, split_type).

        Never raises: a missing registration or an exception from the callback
        comes back as success=False with the error message. Every call counts
        towards the notification statistics.
        """
        config = self._resolve_config(overrides)
        start = time.perf_counter()
        units = list(units or [])
        self._total_notifications += 1
        result = NotificationResult(
            success=False,
            element_id=element_id,
            element_count=len(units),
            split_type=split_type,
        )

        callback = self._callbacks.get(element_id)
        if callback is None:
            result.error = "No callback registered for element"
            self._failed += 1
            log_debug(COMPONENT, f"No callback for {element_id}", config.debug)
            return result

        log_debug(COMPONENT, f"Notifying {element_id} ({len(units)} "
                             f"{getattr(split_type, 'value', split_type)})", config.debug)
        try:
            callback(units, split_type)
        except Exception as e:
            result.execution_time = (time.perf_counter() - start) * 1000.0
            result.error = str(e) or type(e).__name__
            self._failed += 1
            log_warning(COMPONENT, f"Callback failed for {element_id}: {result.error}")
            return result

        result.execution_time = (time.perf_counter() - start) * 1000.0
        result.success = True
        self._successful += 1
        self._total_execution_time += result.execution_time
        log_debug(COMPONENT, f"Callback finished in {result.execution_time:.2f}ms",
                  config.debug)
        return result

    def clear_all_callbacks(self) -> int:
        """Remove every registration and reset statistics; returns the count removed."""
        count = len(self._callbacks)
        self._callbacks.clear()
        self._reset_stats()
        log_debug(COMPONENT, f"Cleared all callbacks ({count} removed)", self.config.debug)
        return count

    def get_stats(self) -> CallbackManagerStats:
        average = (self._total_execution_time / self._total_notifications
                   if self._total_notifications else 0.0)
        return CallbackManagerStats(
            total_callbacks=len(self._callbacks),
            element_ids=list(self._callbacks.keys()),
            total_notifications=self._total_notifications,
            successful_notifications=self._successful,
            failed_notifications=self._failed,
            average_execution_time=round(average, 2),
        )

    def dispose(self) -> None:
        self.clear_all_callbacks()
