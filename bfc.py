import argparse
import os
import pathlib
import shutil
import subprocess
import sys
import tempfile

from bferrors import (BFError, CompilerError, CompilerNotFoundError, EX_USAGE, OutputError,
                      TempFileError)
from bfir import Program, lower
from bfparse import Instruction, load_source, parse

DEFAULT_COMPILER = "gcc"
EXECUTABLE_MODE = 0o755

PROGRAM_HEADER = """#include <stdio.h>
#include <stdlib.h>
#include <string.h>

typedef struct {
    int *cells;
    size_t size;
    size_t pointer;
} tape_t;

static void tape_abort(const char *message)
{
    fprintf(stderr, "abort: %s\\n", message);
    exit(1);
}

static void tape_grow(tape_t *t)
{
    if (t->pointer < t->size)
        return;
    size_t old_size = t->size;
    while (t->pointer >= t->size)
        t->size *= 2;
    int *cells = realloc(t->cells, t->size * sizeof(int));
    if (cells == NULL)
        tape_abort("out of memory");
    memset(cells + old_size, 0, (t->size - old_size) * sizeof(int));
    t->cells = cells;
}

static void tape_back(tape_t *t, size_t count)
{
    if (count > t->pointer)
        tape_abort("pointer out of range");
    t->pointer -= count;
}

int main(void)
{
    tape_t tape = {calloc(1, sizeof(int)), 1, 0};
    tape_t *t = &tape;
    if (t->cells == NULL)
        tape_abort("out of memory");
"""
PROGRAM_FOOTER = """    free(t->cells);
    return 0;
}
"""
INDENT = "    "
ADD_INSTRUCTION = "t->cells[t->pointer] += %d;"
SUB_INSTRUCTION = "t->cells[t->pointer] -= %d;"
SHIFT_RIGHT_INSTRUCTION = "t->pointer += %d; tape_grow(t);"
SHIFT_LEFT_INSTRUCTION = "tape_back(t, %d);"
PUT_INSTRUCTION = "putchar(t->cells[t->pointer]);"
GET_INSTRUCTION = "fflush(stdout); t->cells[t->pointer] = getchar();"
LOOP_START_INSTRUCTION = "while (t->cells[t->pointer] != 0) {"
LOOP_END_INSTRUCTION = "}"


class CEmitter:
    """
    Renders a lowered program as a standalone C program. Loops become
    `while` blocks, so the jump targets carried by the program are not
    needed in the output.
    """
    program: Program

    def __init__(self, program: Program):
        self.program = program

    def __produce_instruction(self, op) -> str:
        match op.kind:
            case Instruction.INC:
                return ADD_INSTRUCTION % op.operand
            case Instruction.DEC:
                return SUB_INSTRUCTION % op.operand
            case Instruction.NEXT:
                return SHIFT_RIGHT_INSTRUCTION % op.operand
            case Instruction.PREV:
                return SHIFT_LEFT_INSTRUCTION % op.operand
            case Instruction.PUT:
                return PUT_INSTRUCTION
            case Instruction.GET:
                return GET_INSTRUCTION
            case Instruction.LOOP_START:
                return LOOP_START_INSTRUCTION
            case Instruction.LOOP_END:
                return LOOP_END_INSTRUCTION
            case _:
                raise ValueError("cannot emit %r" % (op,))

    def compile(self) -> str:
        lines = [PROGRAM_HEADER]
        depth = 1
        for op in self.program:
            if op.kind == Instruction.LOOP_END:
                depth -= 1
            lines.append(INDENT * depth + self.__produce_instruction(op) + "\n")
            if op.kind == Instruction.LOOP_START:
                depth += 1

        lines.append(INDENT + "fflush(stdout);\n")
        lines.append(PROGRAM_FOOTER)
        return "".join(lines)


# these steps are handled by an external C compiler
def build_executable(c_source: str, output_path, compiler: str = DEFAULT_COMPILER,
                     verbose: bool = False):
    """
    Compile C source into an executable at `output_path` and mark it
    executable.
    """
    executable = shutil.which(compiler)
    if executable is None:
        raise CompilerNotFoundError(compiler)

    try:
        source_file = tempfile.NamedTemporaryFile("w", suffix=".c", delete=False)
    except OSError as err:
        raise TempFileError("could not create temporary file (%s)" % err.strerror) from err

    try:
        try:
            with source_file:
                source_file.write(c_source)
        except OSError as err:
            raise TempFileError("could not write temporary file (%s)" % err.strerror) from err

        command = [executable, "-O3", "-o", str(output_path), source_file.name]
        if verbose:
            note(" ".join(command))

        try:
            proc = subprocess.Popen(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as err:
            raise CompilerNotFoundError(compiler) from err
        stdout, stderr = proc.communicate()
        if proc.returncode != 0:
            raise CompilerError("%s failed with status %d" % (compiler, proc.returncode),
                                stderr.decode("utf-8", "replace"))
    finally:
        os.unlink(source_file.name)

    try:
        os.chmod(output_path, EXECUTABLE_MODE)
    except OSError as err:
        raise OutputError("could not make %s executable (%s)" % (output_path, err.strerror)) from err


def write_text(text: str, output_path):
    if output_path is None:
        sys.stdout.write(text)
        return

    try:
        with open(output_path, "w") as fp:
            fp.write(text)
    except OSError as err:
        raise OutputError("could not write C output (%s)" % err.strerror) from err


def fatal(message: str, status: int = 1):
    sys.stderr.write("fatal: %s\n" % message)
    sys.exit(status)


def note(message: str):
    sys.stderr.write("note: %s\n" % message)


def read_options(argv=None):
    parser = argparse.ArgumentParser(description="Compile a brainfuck program through C.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("source", type=pathlib.Path, help="Source code file.", nargs="?")
    group.add_argument("-f", "--file", type=pathlib.Path, help="Read code from the given file.")
    group.add_argument("-c", "--code", help="Read code from this argument.")
    parser.add_argument("-o", "--output", type=pathlib.Path, help="Output executable.")
    parser.add_argument("-S", "--emit-c", action="store_true",
                        help="Write the generated C instead of building it.")
    parser.add_argument("--cc", default=DEFAULT_COMPILER, help="C compiler to build with.")
    parser.add_argument("-v", "--verbose", action="store_true")

    return parser.parse_args(argv)


def main(argv=None):
    options = read_options(argv)
    path = options.file if options.file is not None else options.source

    if not options.emit_c and options.output is None:
        fatal("must provide output file (unless -S is used)", EX_USAGE)

    try:
        source_code, _ = load_source(path=path, code=options.code, stream=sys.stdin.buffer)
        instructions = parse(source_code)
        program = lower(instructions)
        if options.verbose:
            note("%d instructions lowered to %d operations" % (len(instructions), len(program)))

        c_source = CEmitter(program).compile()
        if options.emit_c:
            write_text(c_source, options.output)
        else:
            build_executable(c_source, options.output, options.cc, options.verbose)
    except CompilerError as err:
        sys.stderr.write(err.stderr)
        fatal(str(err), err.exit_status)
    except BFError as err:
        fatal(str(err), err.exit_status)


if __name__ == '__main__':
    main()
