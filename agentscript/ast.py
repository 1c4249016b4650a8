# AST node types for AgentScript programs
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class Command:
    action: str
    arg1: str = ""
    arg2: str = ""


@dataclass(frozen=True)
class Parallel:
    branches: Tuple["Statement", ...]


@dataclass(frozen=True)
class If:
    condition: str
    then: Tuple["Statement", ...]


@dataclass(frozen=True)
class ForEach:
    strategy: str
    body: Tuple["Statement", ...]


Node = Union[Command, Parallel, If, ForEach]


@dataclass(frozen=True)
class Statement:
    node: Node
    next: Optional["Statement"] = None

    def stages(self) -> Tuple["Statement", ...]:
        """Flatten the `->` chain starting at this statement."""
        out = [self]
        cur = self.next
        while cur is not None:
            out.append(cur)
            cur = cur.next
        return tuple(out)


@dataclass(frozen=True)
class Program:
    statements: Tuple[Statement, ...]

    def __len__(self) -> int:
        return len(self.statements)
