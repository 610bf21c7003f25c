"""
Variables and custom tokens.

Global variables live on the GameContext; local variables are registered
in a scene; component variables belong to a scene object and are saved by
RememberVariables. All three share the Variables container and its token
format: `id:value|id:value`, with bools as 1/0 and strings escaped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Any, Iterator, Optional, Union

from persistence.save import tokens

logger = logging.getLogger(__name__)

Value = Union[bool, int, float, str]


class VariableType(Enum):
    BOOLEAN = auto()
    INTEGER = auto()
    FLOAT = auto()
    STRING = auto()


_DEFAULTS: dict[VariableType, Value] = {
    VariableType.BOOLEAN: False,
    VariableType.INTEGER: 0,
    VariableType.FLOAT: 0.0,
    VariableType.STRING: "",
}


@dataclass
class Variable:
    """A single typed variable."""
    id: int
    label: str
    type: VariableType
    value: Value

    def parse(self, raw: str) -> Value:
        """Convert a saved token value to this variable's type."""
        if self.type is VariableType.BOOLEAN:
            return tokens.parse_bool(raw)
        if self.type is VariableType.INTEGER:
            return int(raw)
        if self.type is VariableType.FLOAT:
            return float(raw)
        return tokens.unescape(raw)


class Variables:
    """
    A set of typed variables addressed by id or label.

    Usage:
        variables = Variables()
        variables.define(1, "chapter", VariableType.STRING, "Chapter 1")
        variables.set(1, "Chapter 2")
    """

    def __init__(self):
        self._vars: dict[int, Variable] = {}

    def define(self, var_id: int, label: str, var_type: VariableType, value: Value | None = None) -> Variable:
        variable = Variable(var_id, label, var_type, _DEFAULTS[var_type] if value is None else value)
        self._vars[var_id] = variable
        return variable

    def get_variable(self, key: int | str) -> Optional[Variable]:
        if isinstance(key, int):
            return self._vars.get(key)
        for variable in self._vars.values():
            if variable.label == key:
                return variable
        return None

    def get(self, key: int | str, default: Any = None) -> Any:
        variable = self.get_variable(key)
        return variable.value if variable else default

    def set(self, key: int | str, value: Value) -> None:
        variable = self.get_variable(key)
        if variable is None:
            raise KeyError(f"No variable {key!r}")
        variable.value = value

    def copy(self) -> Variables:
        other = Variables()
        other._vars = {var_id: replace(v) for var_id, v in self._vars.items()}
        return other

    def __iter__(self) -> Iterator[Variable]:
        return iter(list(self._vars.values()))

    def __len__(self) -> int:
        return len(self._vars)

    def capture(self) -> str:
        return tokens.join_tokens((v.id, v.value) for v in self._vars.values())

    def restore(self, data: str) -> None:
        """
        Apply saved values to the variables defined here.

        Ids with no matching definition are skipped, so a save made before
        a variable was removed still loads.
        """
        for key, raw in tokens.split_tokens(data):
            try:
                variable = self._vars.get(int(key))
            except ValueError:
                logger.warning("Ignoring malformed variable id '%s'", key)
                continue
            if variable is None:
                logger.debug("Skipping saved value for unknown variable %s", key)
                continue
            try:
                variable.value = variable.parse(raw)
            except ValueError:
                logger.warning("Cannot parse saved value '%s' for variable %s", raw, key)


class CustomTokens:
    """Free-form text tokens, by id, that dialogue and menus can embed."""

    def __init__(self):
        self._tokens: dict[int, str] = {}

    def set(self, token_id: int, text: str) -> None:
        self._tokens[token_id] = text

    def get(self, token_id: int, default: str = "") -> str:
        return self._tokens.get(token_id, default)

    def __len__(self) -> int:
        return len(self._tokens)

    def capture(self) -> str:
        return tokens.join_tokens(sorted(self._tokens.items()))

    def restore(self, data: str) -> None:
        restored = {}
        for key, raw in tokens.split_tokens(data):
            try:
                restored[int(key)] = tokens.unescape(raw)
            except ValueError:
                logger.warning("Ignoring malformed custom token id '%s'", key)
        self._tokens = restored
