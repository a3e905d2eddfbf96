import argparse
import contextlib
import pathlib
import sys
from typing import BinaryIO

from bferrors import BFError, OutputError, TapeError
from bfir import Program, lower
from bfparse import Instruction, load_source, parse


# what `,` stores once input is exhausted; matches C's getchar()
EOF_VALUE = -1


def io_getchar(stream: BinaryIO, pending: bytearray) -> int:
    if pending:
        return pending.pop(0)

    raw = stream.read(1)
    if len(raw) == 0:
        return EOF_VALUE
    return raw[0]


class Tape:
    """
    Zero-initialised memory that doubles in size whenever the pointer moves
    past its end. Moving below cell 0 is an error.
    """

    def __init__(self):
        self.cells = [0]
        self.pointer = 0

    def __len__(self):
        return len(self.cells)

    @property
    def value(self) -> int:
        return self.cells[self.pointer]

    @value.setter
    def value(self, value: int):
        self.cells[self.pointer] = value

    def forward(self, count: int):
        self.pointer += count
        if self.pointer >= len(self.cells):
            self.__grow()

    def back(self, count: int):
        if count > self.pointer:
            raise TapeError("pointer out of range (%d)" % (self.pointer - count))
        self.pointer -= count

    def __grow(self):
        size = len(self.cells)
        while self.pointer >= size:
            size *= 2
        self.cells.extend([0] * (size - len(self.cells)))


def execute(program: Program, stdin: BinaryIO | None = None, stdout: BinaryIO | None = None,
            tape: Tape | None = None, pending: bytes = b"") -> Tape:
    """
    Run a lowered program. Returns the tape as it was when the program halted.

    `pending` holds input bytes already taken off `stdin`; `,` reads them
    before reading the stream.
    """
    if stdin is None:
        stdin = sys.stdin.buffer
    if stdout is None:
        stdout = sys.stdout.buffer
    if tape is None:
        tape = Tape()
    pending = bytearray(pending)

    operations = program.operations
    cursor = 0
    while cursor < len(operations):
        op = operations[cursor]
        match op.kind:
            case Instruction.INC:
                tape.value += op.operand
            case Instruction.DEC:
                tape.value -= op.operand
            case Instruction.NEXT:
                tape.forward(op.operand)
            case Instruction.PREV:
                tape.back(op.operand)
            case Instruction.LOOP_START:
                if tape.value == 0:
                    cursor = op.operand
            case Instruction.LOOP_END:
                if tape.value != 0:
                    cursor = op.operand
            case Instruction.PUT:
                stdout.write(bytes([tape.value & 0xFF]))
            case Instruction.GET:
                # anything written so far may be a prompt for this read
                stdout.flush()
                tape.value = io_getchar(stdin, pending)
        cursor += 1

    stdout.flush()
    return tape


def interpret(source, stdin: BinaryIO | None = None, stdout: BinaryIO | None = None,
              pending: bytes = b"") -> Tape:
    """
    Interpret the program.
    """
    return execute(lower(parse(source)), stdin, stdout, pending=pending)


# entry point
def fatal(message: str, status: int = 1):
    sys.stderr.write("fatal: %s\n" % message)
    sys.exit(status)


def note(message: str):
    sys.stderr.write("note: %s\n" % message)


def open_output(path: pathlib.Path | None):
    if path is None:
        return contextlib.nullcontext(sys.stdout.buffer)

    try:
        return open(path, "wb")
    except OSError as err:
        raise OutputError("could not open output file %s (%s)" % (path, err.strerror)) from err


def read_options(argv=None):
    parser = argparse.ArgumentParser(description="Interpret a brainfuck program.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("source", type=pathlib.Path, help="The file to interpret.", nargs="?")
    group.add_argument("-f", "--file", type=pathlib.Path, help="Read code from the given file.")
    group.add_argument("-c", "--code", help="Read code from this argument.")
    parser.add_argument("-o", "--output", type=pathlib.Path, help="Write program output to this file.")
    parser.add_argument("-v", "--verbose", action="store_true")

    return parser.parse_args(argv)


def main(argv=None):
    options = read_options(argv)
    path = options.file if options.file is not None else options.source

    try:
        source, unused = load_source(path=path, code=options.code, stream=sys.stdin.buffer)
        instructions = parse(source)
        program = lower(instructions)
        if options.verbose:
            note("%d instructions lowered to %d operations" % (len(instructions), len(program)))

        with open_output(options.output) as out:
            execute(program, stdout=out, pending=unused)
    except BFError as err:
        fatal(str(err), err.exit_status)


if __name__ == '__main__':
    main()
