"""Emit one physical action per distinct (command, per-configuration output).

A user-declared command can be attached to many targets and is materialized
once per target and configuration. The build engine rejects two nodes that
declare the same output, so later encounters are either collapsed into an
alias of the first action or renamed into a host-unique fresh action.
"""

from dataclasses import dataclass, field
from enum import Enum

from .errors import InternalError
from .facts import CONFIG_NAME_MACRO
from .model import Alias, BuildAction


class DedupOutcome(str, Enum):
    EMIT = "emit"
    ALIAS = "alias"
    FRESH = "fresh"


def is_config_dependent(outputs: tuple[str, ...] | list[str]) -> bool:
    return any(CONFIG_NAME_MACRO in output for output in outputs)


@dataclass
class _IdentityRecord:
    first_name: str
    per_config: dict[str, str] = field(default_factory=dict)


class ActionDeduplicator:
    """Per-run table of command identity -> emitted action names.

    Owned by one GenerationContext and discarded with it.
    """

    def __init__(self) -> None:
        self._records: dict[str, _IdentityRecord] = {}
        self._names: set[str] = set()
        self.aliases: list[Alias] = []
        self.fresh_count = 0

    def resolve(
        self,
        action: BuildAction,
        *,
        identity: str,
        host: str,
        config: str,
        outputs: tuple[str, ...],
    ) -> DedupOutcome:
        """Decide how `action` is emitted and mutate it accordingly.

        The first encounter of `identity` keeps the action and its name. A
        later encounter:

        - with real, configuration-independent outputs becomes an alias of the
          first emitted action (`action.alias_of` is set; the name is kept).
          This holds for the same host too: a command attached to two phases
          of one target runs once, since its output can only have one
          producer node;
        - with configuration-dependent outputs, or none at all, stays a real
          action. It keeps its own name when it is the first instance in its
          configuration, else it is renamed `<base>-<host>` where `<base>` is
          the instance already emitted for that configuration. Further
          instances from the same host get `-2`, `-3` and so on.

        Args:
            action: Freshly materialized action, named by its phase record.
            identity: Identity of the user-declared command it comes from.
            host: Name of the target that hosts this instance.
            config: Configuration being materialized.
            outputs: Declared outputs before `$ConfigName$` resolution.

        Returns:
            What happened to the action.

        Raises:
            InternalError: If a real action's final name was already emitted.
        """
        record = self._records.get(identity)
        if record is None:
            self._records[identity] = _IdentityRecord(
                first_name=action.name, per_config={config: action.name}
            )
            self._claim(action.name)
            return DedupOutcome.EMIT

        if outputs and not is_config_dependent(outputs):
            action.alias_of = record.first_name
            self._claim(action.name)
            self.aliases.append(Alias(action.name, (record.first_name,)))
            return DedupOutcome.ALIAS

        base = record.per_config.get(config)
        if base is None:
            record.per_config[config] = action.name
            self._claim(action.name)
            return DedupOutcome.EMIT

        action.name = self._fresh_name(f"{base}-{host}")
        self._claim(action.name)
        self.fresh_count += 1
        return DedupOutcome.FRESH

    def _fresh_name(self, candidate: str) -> str:
        # A host reusing the command in several phases gets -2, -3, ...
        name = candidate
        suffix = 2
        while name in self._names:
            name = f"{candidate}-{suffix}"
            suffix += 1
        return name

    def _claim(self, name: str) -> None:
        if name in self._names:
            raise InternalError(f"Build action name is not unique: {name}")
        self._names.add(name)
