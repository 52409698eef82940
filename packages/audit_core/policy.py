"""
Creation policy engine.

Decides, for a creation policy and a lifecycle stage, whether the scope writes
now and whether that write is an insert or a replace. Keeping this apart from
the storage provider lets the provider stay unaware of timing.
"""

from enum import Enum

from .models import EventCreationPolicy


class LifecycleStage(str, Enum):
    """Points in a scope's life where a write may happen."""

    CREATE = "create"
    SAVE = "save"
    DISPOSE = "dispose"


class WriteAction(str, Enum):
    """Storage write to perform."""

    INSERT = "insert"
    REPLACE = "replace"
    SKIP = "skip"


class _Rule(str, Enum):
    NONE = "none"
    INSERT_IF_NEW = "insert_if_new"  # insert, or nothing if already persisted
    REPLACE_IF_PERSISTED = "replace_if_persisted"  # replace, or nothing if not persisted
    WRITE = "write"  # insert if new, replace otherwise


_POLICY_RULES: dict[tuple[EventCreationPolicy, LifecycleStage], _Rule] = {
    (EventCreationPolicy.INSERT_ON_START, LifecycleStage.CREATE): _Rule.INSERT_IF_NEW,
    (EventCreationPolicy.INSERT_ON_START, LifecycleStage.SAVE): _Rule.REPLACE_IF_PERSISTED,
    (EventCreationPolicy.INSERT_ON_START, LifecycleStage.DISPOSE): _Rule.INSERT_IF_NEW,
    (EventCreationPolicy.INSERT_ON_END, LifecycleStage.CREATE): _Rule.NONE,
    (EventCreationPolicy.INSERT_ON_END, LifecycleStage.SAVE): _Rule.NONE,
    (EventCreationPolicy.INSERT_ON_END, LifecycleStage.DISPOSE): _Rule.WRITE,
    (EventCreationPolicy.INSERT_ON_START_REPLACE_ON_END, LifecycleStage.CREATE): _Rule.INSERT_IF_NEW,
    (EventCreationPolicy.INSERT_ON_START_REPLACE_ON_END, LifecycleStage.SAVE): _Rule.NONE,
    (EventCreationPolicy.INSERT_ON_START_REPLACE_ON_END, LifecycleStage.DISPOSE): _Rule.WRITE,
    (EventCreationPolicy.MANUAL, LifecycleStage.CREATE): _Rule.NONE,
    (EventCreationPolicy.MANUAL, LifecycleStage.SAVE): _Rule.WRITE,
    (EventCreationPolicy.MANUAL, LifecycleStage.DISPOSE): _Rule.NONE,
}


class CreationPolicyEngine:
    """Maps (policy, stage, persisted) to the write a scope must perform.

    An INSERT is never returned for an event that is already persisted.
    """

    def decide(
        self,
        policy: EventCreationPolicy,
        stage: LifecycleStage,
        persisted: bool,
    ) -> WriteAction:
        """Decide the write for one lifecycle stage.

        Args:
            policy: Creation policy of the scope.
            stage: Lifecycle stage being executed.
            persisted: Whether the event already has a backend id.

        Returns:
            Write action to perform.

        Raises:
            ValueError: If the policy or stage is unknown.
        """
        try:
            rule = _POLICY_RULES[(EventCreationPolicy(policy), LifecycleStage(stage))]
        except KeyError as e:
            raise ValueError(f"No creation rule for {policy!r} at {stage!r}") from e

        if rule is _Rule.NONE:
            return WriteAction.SKIP
        if rule is _Rule.INSERT_IF_NEW:
            return WriteAction.SKIP if persisted else WriteAction.INSERT
        if rule is _Rule.REPLACE_IF_PERSISTED:
            return WriteAction.REPLACE if persisted else WriteAction.SKIP
        return WriteAction.REPLACE if persisted else WriteAction.INSERT
