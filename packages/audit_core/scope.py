"""
Audit scope: the live handle spanning one audited operation.

The scope owns a single EventRecord, asks the creation policy engine whether
each lifecycle stage writes, and calls the storage provider to do it.
Storage failures propagate to the caller and leave the phase unchanged so the
caller may retry.

Usage:
    with AuditScope("Order:Create", provider, {"OrderId": 42}) as scope:
        ...
        scope.set_custom_field("Status", "Filled")
"""

from types import TracebackType
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Sequence

import structlog

from .environment import capture_environment
from .errors import AuditError
from .models import (
    ActionType,
    AuditPhase,
    EventCreationPolicy,
    EventRecord,
)
from .policy import CreationPolicyEngine, LifecycleStage, WriteAction

if TYPE_CHECKING:
    from packages.audit_store.provider import StorageProvider


logger = structlog.get_logger(__name__)

CustomAction = Callable[["AuditScope"], None]

_default_engine = CreationPolicyEngine()


class AuditScope:
    """
    Stateful handle for one audited operation.

    Not safe for concurrent use; callers own one scope per operation instance.
    The storage provider may be shared between scopes.
    """

    def __init__(
        self,
        event_type: str,
        provider: "StorageProvider",
        extra_fields: Optional[Mapping[str, Any]] = None,
        policy: EventCreationPolicy = EventCreationPolicy.INSERT_ON_END,
        engine: Optional[CreationPolicyEngine] = None,
        custom_actions: Optional[Mapping[ActionType, Sequence[CustomAction]]] = None,
        calling_method_name: Optional[str] = None,
    ) -> None:
        """
        Create the scope and run the creation-stage write.

        Args:
            event_type: Event type name
            provider: Storage provider the event is written to
            extra_fields: Initial custom fields
            policy: Creation policy, fixed for the life of the scope
            engine: Policy engine (default shared engine)
            custom_actions: Callbacks per hook point
            calling_method_name: Overrides stack-based caller detection

        Raises:
            StorageUnavailableError: If an immediate insert cannot reach the backend
            SerializationError: If an immediate insert cannot encode the event
        """
        self._provider = provider
        self._policy = EventCreationPolicy(policy)
        self._engine = engine or _default_engine
        self._custom_actions = {
            action_type: list(callbacks)
            for action_type, callbacks in (custom_actions or {}).items()
        }
        self._phase = AuditPhase.CREATED
        self._event = EventRecord(
            event_type=event_type,
            environment=capture_environment(calling_method_name),
            custom_fields=dict(extra_fields or {}),
        )

        self._run_actions(ActionType.ON_SCOPE_CREATED)
        self._write(LifecycleStage.CREATE)
        self._set_phase(AuditPhase.IN_PROGRESS)

        logger.debug(
            "audit_scope_created",
            event_type=event_type,
            policy=self._policy.value,
            event_id=self.event_id,
        )

    @property
    def event(self) -> EventRecord:
        return self._event

    @property
    def event_id(self) -> Optional[str]:
        """Backend id of the event, None until the first insert succeeds."""
        return self._event.persisted_id

    @property
    def policy(self) -> EventCreationPolicy:
        return self._policy

    @property
    def phase(self) -> AuditPhase:
        return self._phase

    @property
    def is_disposed(self) -> bool:
        return self._phase is AuditPhase.DISPOSED

    def set_custom_field(self, key: str, value: Any) -> None:
        """Add or replace a custom field on the event."""
        if self.is_disposed:
            logger.warning("audit_scope_disposed_mutation", key=key, event_type=self._event.event_type)
            return
        self._event.set_custom_field(key, value)
        if self._phase is AuditPhase.SAVED:
            self._set_phase(AuditPhase.IN_PROGRESS)

    def comment(self, text: str) -> None:
        """Attach a free-text note to the event."""
        if self.is_disposed:
            logger.warning("audit_scope_disposed_comment", event_type=self._event.event_type)
            return
        self._event.comments.append(text)
        if self._phase is AuditPhase.SAVED:
            self._set_phase(AuditPhase.IN_PROGRESS)

    def save(self) -> None:
        """
        Commit the event according to the creation policy.

        No-op on a disposed scope.

        Raises:
            StorageUnavailableError: Backend unreachable
            SerializationError: Event cannot be encoded
            EventNotFoundError: Replace target vanished from the backend
        """
        if self.is_disposed:
            logger.debug("audit_scope_save_ignored", event_type=self._event.event_type)
            return
        self._write(LifecycleStage.SAVE)
        self._set_phase(AuditPhase.SAVED)

    def dispose(self) -> None:
        """
        End the scope, performing the final write the policy requires.

        Calling it again after success is a no-op.

        Raises:
            StorageUnavailableError: Backend unreachable
            SerializationError: Event cannot be encoded
            EventNotFoundError: Replace target vanished from the backend
        """
        if self.is_disposed:
            return
        self._event.mark_ended()
        self._write(LifecycleStage.DISPOSE)
        self._set_phase(AuditPhase.SAVED)
        self._set_phase(AuditPhase.DISPOSED)
        logger.debug(
            "audit_scope_disposed",
            event_type=self._event.event_type,
            event_id=self.event_id,
            duration_ms=self._event.duration_ms,
        )

    def discard(self) -> None:
        """End the scope without writing anything further."""
        if self.is_disposed:
            return
        self._set_phase(AuditPhase.DISPOSED)
        logger.debug("audit_scope_discarded", event_type=self._event.event_type)

    def __enter__(self) -> "AuditScope":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if exc is not None and not self.is_disposed:
            self._event.exception = f"({type(exc).__name__}) {exc}"
        self.dispose()

    def _write(self, stage: LifecycleStage) -> None:
        action = self._engine.decide(
            self._policy, stage, persisted=self._event.persisted_id is not None
        )
        if action is WriteAction.SKIP:
            return

        self._run_actions(ActionType.ON_EVENT_SAVING)
        try:
            if action is WriteAction.INSERT:
                event_id = self._provider.insert(self._event)
                self._event.mark_persisted(event_id)
                logger.info(
                    "audit_event_inserted",
                    event_type=self._event.event_type,
                    event_id=event_id,
                    stage=stage.value,
                )
            else:
                event_id = self._event.persisted_id
                self._provider.replace(event_id, self._event)
                logger.info(
                    "audit_event_replaced",
                    event_type=self._event.event_type,
                    event_id=event_id,
                    stage=stage.value,
                )
        except AuditError as e:
            logger.warning(
                "audit_write_failed",
                event_type=self._event.event_type,
                stage=stage.value,
                write=action.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        self._run_actions(ActionType.ON_EVENT_SAVED)

    def _set_phase(self, phase: AuditPhase) -> None:
        if phase is self._phase:
            return
        logger.debug(
            "audit_scope_phase_changed",
            event_type=self._event.event_type,
            from_phase=self._phase.value,
            to_phase=phase.value,
        )
        self._phase = phase

    def _run_actions(self, action_type: ActionType) -> None:
        for callback in self._custom_actions.get(action_type, ()):
            callback(self)
