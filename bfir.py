"""
The lowered program representation.

Runs of identical cell and pointer instructions are folded into a single
operation carrying the run length, and every loop bracket carries the index
of its partner so execution never has to search for it.
"""
import dataclasses
from typing import Iterable, Iterator

from bfparse import Instruction, TOKEN_CHARS


REPEATABLE = frozenset([Instruction.INC, Instruction.DEC, Instruction.NEXT, Instruction.PREV])
BRACKETS = frozenset([Instruction.LOOP_START, Instruction.LOOP_END])


@dataclasses.dataclass(slots=True)
class Operation:
    kind: Instruction
    operand: int | None = None

    @property
    def width(self) -> int:
        # slots taken in the classic flat opcode/operand encoding
        return 1 if self.operand is None else 2


class Program:
    operations: tuple[Operation, ...]

    def __init__(self, operations: Iterable[Operation]):
        self.operations = tuple(operations)

    def __len__(self):
        return len(self.operations)

    def __getitem__(self, index):
        return self.operations[index]

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def __eq__(self, other):
        if not isinstance(other, Program):
            return NotImplemented
        return self.operations == other.operations

    def __repr__(self):
        return "Program(%r)" % (self.operations,)

    @property
    def size(self) -> int:
        return sum(op.width for op in self.operations)

    def to_source(self) -> str:
        return "".join(TOKEN_CHARS[kind] for kind in expand(self))


def count_operations(instructions: list[Instruction]) -> int:
    """
    Number of operations `lower` will produce for `instructions`.
    """
    count = 0
    previous = Instruction.UNDEFINED
    for current in instructions:
        if current not in REPEATABLE or current != previous:
            count += 1
        previous = current
    return count


def lower(instructions: list[Instruction]) -> Program:
    """
    Compress a validated instruction list into a Program.

    The input must come from `bfparse.parse`; unbalanced brackets are not
    detected here.
    """
    operations: list[Operation | None] = [None] * count_operations(instructions)
    pending_starts = []
    compressing = Instruction.UNDEFINED
    i_new = 0

    for instruction in instructions:
        if instruction in REPEATABLE:
            if instruction == compressing:
                operations[i_new - 1].operand += 1
                continue
            compressing = instruction
            operations[i_new] = Operation(instruction, 1)
        elif instruction == Instruction.LOOP_START:
            compressing = Instruction.UNDEFINED
            pending_starts.append(i_new)
            # patched once the matching loop end is reached
            operations[i_new] = Operation(instruction, -1)
        elif instruction == Instruction.LOOP_END:
            compressing = Instruction.UNDEFINED
            loop_start = pending_starts.pop()
            operations[loop_start].operand = i_new
            operations[i_new] = Operation(instruction, loop_start)
        else:
            compressing = Instruction.UNDEFINED
            operations[i_new] = Operation(instruction)
        i_new += 1

    return Program(operations)


def expand(program: Program) -> list[Instruction]:
    """
    Undo run-length compression, giving back one instruction per source token.
    """
    instructions = []
    for op in program:
        if op.kind in REPEATABLE:
            instructions.extend([op.kind] * op.operand)
        else:
            instructions.append(op.kind)
    return instructions
