import enum
import pathlib
from typing import BinaryIO, Iterable

from bferrors import LoopEndBeforeStartError, NoInputError, UnbalancedLoopError


PROGRAM_TERMINATOR = "!"


class Instruction(enum.IntEnum):
    UNDEFINED = 0
    INC = 1
    DEC = 2
    GET = 3
    PUT = 4
    NEXT = 5
    PREV = 6
    LOOP_START = 7
    LOOP_END = 8


_TOKEN_TABLE = {
    "+": Instruction.INC,
    "-": Instruction.DEC,
    ",": Instruction.GET,
    ".": Instruction.PUT,
    ">": Instruction.NEXT,
    "<": Instruction.PREV,
    "[": Instruction.LOOP_START,
    "]": Instruction.LOOP_END,
}

TOKEN_CHARS = {kind: char for char, kind in _TOKEN_TABLE.items()}


def classify(char: str) -> Instruction:
    return _TOKEN_TABLE.get(char, Instruction.UNDEFINED)


def parse(source: Iterable[str]) -> list[Instruction]:
    """
    Turn source text into a flat list of instructions, checking that loop
    brackets are balanced on the way. Fails on the first `]` that has no
    open `[` to close, without reading the rest of the input.
    """
    instructions = []
    balance = 0

    for offset, char in enumerate(source):
        instruction = classify(char)
        if instruction == Instruction.UNDEFINED:
            continue

        instructions.append(instruction)
        if instruction == Instruction.LOOP_START:
            balance += 1
        elif instruction == Instruction.LOOP_END:
            balance -= 1
            if balance < 0:
                raise LoopEndBeforeStartError(offset)

    if balance != 0:
        raise UnbalancedLoopError(balance)

    return instructions


def read_until_char(stream: BinaryIO, char: str = PROGRAM_TERMINATOR, chunk_size: int = 1024):
    """
    Read program text from a stream up to (not including) the first
    occurrence of `char`. Returns the text and whatever bytes were read past
    the separator, so they can still be handed to the program as input.
    """
    marker = char.encode("latin-1")
    result = b""

    read = getattr(stream, "read1", stream.read)
    while marker not in result:
        chunk = read(chunk_size)
        if not chunk:
            return result.decode("latin-1"), b""
        result += chunk

    first_occurrence = result.index(marker)
    unused = result[first_occurrence + 1:]
    return result[:first_occurrence].decode("latin-1"), unused


def load_source(path: pathlib.Path | None = None, code: str | None = None,
                stream: BinaryIO | None = None):
    """
    Acquire program text from an argument, a file, or a stream, in that
    order of preference. Returns (source, unused_input_bytes).
    """
    unused = b""
    if code is not None:
        source = code
    elif path is not None:
        try:
            source = pathlib.Path(path).read_bytes().decode("latin-1")
        except OSError as err:
            raise NoInputError("could not read input file %s (%s)" % (path, err.strerror)) from err
    elif stream is not None:
        source, unused = read_until_char(stream)
    else:
        raise NoInputError("no input source given")

    if not source:
        raise NoInputError("could not read from input")

    return source, unused
