"""Workflow definition schema.

A workflow is a small state machine expressed as plain frozen
dataclasses:

  - ``TaskState``   calls a named capability with a request built from
                    the current document, then merges the response
  - ``PassState``   reshapes the document with a pure projection
  - ``ChoiceState`` picks the next state from an ordered list of rules

``WorkflowDef`` ties the states together and refuses to exist in an
invalid shape: the graph is checked when the object is constructed.

Example::

    wf = WorkflowDef(
        name="echo",
        start_at="Call",
        states={
            "Call": TaskState(
                name="Call",
                capability="Echo",
                build_request=lambda doc: {"Text": select(doc, "txt")},
                next=None,
            ),
        },
    )
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Optional, Union

import networkx as nx

from sentiflow.workflows.document import Document, select_str
from sentiflow.workflows.errors import WorkflowDefinitionError


# ---------------------------------------------------------------------------
# Choice predicates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StringEquals:
    """True when the string at ``field`` equals ``value``."""
    field: str
    value: str

    def __call__(self, document: Document) -> bool:
        return select_str(document, self.field) == self.value

    def describe(self) -> str:
        return f"$.{self.field} == {self.value!r}"


@dataclass(frozen=True)
class Not:
    """Logical negation of another predicate."""
    predicate: "Predicate"

    def __call__(self, document: Document) -> bool:
        return not self.predicate(document)

    def describe(self) -> str:
        return f"not ({self.predicate.describe()})"


Predicate = Union[StringEquals, Not]


@dataclass(frozen=True)
class ChoiceRule:
    predicate: Predicate
    next: str


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------


RequestBuilder = Callable[[Document], Mapping[str, Any]]
Projection = Callable[[Document], Mapping[str, Any]]


@dataclass(frozen=True)
class TaskState:
    """Invoke an external capability.

    ``result_key`` names the field the response is merged into.  When it
    is ``None`` the response replaces the whole document.
    """
    name: str
    capability: str
    build_request: RequestBuilder
    next: Optional[str]
    result_key: Optional[str] = "result"
    description: str = ""

    type = "Task"


@dataclass(frozen=True)
class PassState:
    """Pure reshape of the document, no external call."""
    name: str
    project: Projection
    next: Optional[str]
    description: str = ""

    type = "Pass"


@dataclass(frozen=True)
class ChoiceState:
    """Branch on the document.  Rules are tried in declared order."""
    name: str
    rules: tuple[ChoiceRule, ...]
    default: Optional[str] = None
    description: str = ""

    type = "Choice"

    def targets(self) -> list[str]:
        out = [r.next for r in self.rules]
        if self.default is not None:
            out.append(self.default)
        return out


State = Union[TaskState, PassState, ChoiceState]


def successors(state: State) -> list[str]:
    """Names of every state reachable in one transition from ``state``."""
    if isinstance(state, ChoiceState):
        return state.targets()
    return [state.next] if state.next is not None else []


def is_terminal(state: State) -> bool:
    return not isinstance(state, ChoiceState) and state.next is None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def build_graph(states: Mapping[str, State]) -> nx.DiGraph:
    """Directed graph of state names, one edge per possible transition."""
    graph = nx.DiGraph()
    for name, state in states.items():
        graph.add_node(name, type=state.type)
        for target in successors(state):
            graph.add_edge(name, target)
    return graph


def validate_states(start_at: str, states: Mapping[str, State]) -> list[str]:
    """Validate a state graph.  Returns list of error messages."""
    errors: list[str] = []
    if not states:
        return ["Workflow must have at least one state"]
    if start_at not in states:
        errors.append(f"Start state '{start_at}' is not defined")

    for key, state in states.items():
        if state.name != key:
            errors.append(f"State registered as '{key}' is named '{state.name}'")
        if isinstance(state, ChoiceState) and not state.rules:
            errors.append(f"Choice state '{key}' has no rules")
        if isinstance(state, TaskState) and not state.capability:
            errors.append(f"Task state '{key}' missing capability name")
        for target in successors(state):
            if target not in states:
                errors.append(f"State '{key}' transitions to undefined state '{target}'")

    if errors:
        return errors

    graph = build_graph(states)
    reachable = nx.descendants(graph, start_at) | {start_at}
    for name in states:
        if name not in reachable:
            errors.append(f"State '{name}' is unreachable from '{start_at}'")

    if not nx.is_directed_acyclic_graph(graph):
        cycle = nx.find_cycle(graph)
        errors.append("Workflow contains a cycle: " + " -> ".join(u for u, _ in cycle))

    terminals = [name for name, state in states.items() if is_terminal(state)]
    if len(terminals) != 1:
        errors.append(
            f"Workflow must have exactly one terminal state, found {len(terminals)}"
            + (f" ({', '.join(sorted(terminals))})" if terminals else "")
        )

    return errors


# ---------------------------------------------------------------------------
# Definition
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowDef:
    """Complete, validated workflow definition."""
    name: str
    start_at: str
    states: Mapping[str, State]
    description: str = ""
    version: str = "1.0"
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        errors = validate_states(self.start_at, self.states)
        if not self.name:
            errors.insert(0, "Workflow name is required")
        if errors:
            raise WorkflowDefinitionError(errors)
        object.__setattr__(self, "states", MappingProxyType(dict(self.states)))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def edges(self) -> dict[str, str]:
        """Successor of every Task/Pass state that has one."""
        return {
            name: state.next
            for name, state in self.states.items()
            if not isinstance(state, ChoiceState) and state.next is not None
        }

    @property
    def terminal_state(self) -> str:
        return next(name for name, state in self.states.items() if is_terminal(state))

    def graph(self) -> nx.DiGraph:
        return build_graph(self.states)

    def to_dict(self) -> dict[str, Any]:
        """Describe the graph in a JSON-friendly shape."""
        states: dict[str, Any] = {}
        for name, state in self.states.items():
            entry: dict[str, Any] = {"Type": state.type}
            if state.description:
                entry["Comment"] = state.description
            if isinstance(state, TaskState):
                entry["Resource"] = state.capability
                entry["ResultPath"] = f"$.{state.result_key}" if state.result_key else "$"
            if isinstance(state, ChoiceState):
                entry["Choices"] = [
                    {"Condition": r.predicate.describe(), "Next": r.next}
                    for r in state.rules
                ]
                if state.default is not None:
                    entry["Default"] = state.default
            elif state.next is None:
                entry["End"] = True
            else:
                entry["Next"] = state.next
            states[name] = entry
        return {
            "Comment": self.description,
            "Version": self.version,
            "StartAt": self.start_at,
            "States": states,
        }
