import unittest

from bfir import Operation, Program, count_operations, expand, lower
from bfparse import Instruction, parse


def lowered(source: str) -> Program:
    return lower(parse(source))


class LowerTests(unittest.TestCase):
    def test_runs_are_folded(self) -> None:
        self.assertEqual(
            list(lowered("+++--->><<<")),
            [
                Operation(Instruction.INC, 3),
                Operation(Instruction.DEC, 3),
                Operation(Instruction.NEXT, 2),
                Operation(Instruction.PREV, 3),
            ],
        )

    def test_io_breaks_runs(self) -> None:
        self.assertEqual(
            list(lowered("++.++,,")),
            [
                Operation(Instruction.INC, 2),
                Operation(Instruction.PUT),
                Operation(Instruction.INC, 2),
                Operation(Instruction.GET),
                Operation(Instruction.GET),
            ],
        )

    def test_comments_do_not_break_runs(self) -> None:
        self.assertEqual(list(lowered("+ + +")), [Operation(Instruction.INC, 3)])

    def test_brackets_break_runs(self) -> None:
        program = lowered("+[+]+")
        self.assertEqual([op.kind for op in program],
                         [Instruction.INC, Instruction.LOOP_START, Instruction.INC,
                          Instruction.LOOP_END, Instruction.INC])
        self.assertEqual(program[0].operand, 1)
        self.assertEqual(program[4].operand, 1)

    def test_loop_targets_point_at_each_other(self) -> None:
        program = lowered("[-]")
        self.assertEqual(program[0], Operation(Instruction.LOOP_START, 2))
        self.assertEqual(program[2], Operation(Instruction.LOOP_END, 0))

    def test_nested_loops_match_outer_to_outer(self) -> None:
        program = lowered("[[-]+]")
        self.assertEqual(program[0].operand, 5)
        self.assertEqual(program[5].operand, 0)
        self.assertEqual(program[1].operand, 3)
        self.assertEqual(program[3].operand, 1)

    def test_sibling_loops(self) -> None:
        program = lowered("[>][<]")
        self.assertEqual([op.operand for op in program], [2, 1, 0, 5, 1, 3])

    def test_empty(self) -> None:
        program = lowered("")
        self.assertEqual(len(program), 0)
        self.assertEqual(program.size, 0)

    def test_no_undefined_operations(self) -> None:
        program = lowered("comment +[>.<-] more")
        self.assertNotIn(Instruction.UNDEFINED, [op.kind for op in program])

    def test_count_operations_matches_output(self) -> None:
        for source in ["", "+", "+++.", "+[+]+", ">>><<<+-+-", "[[-]+]", ",.,.++--"]:
            instructions = parse(source)
            self.assertEqual(count_operations(instructions), len(lower(instructions)), source)

    def test_size_counts_slots(self) -> None:
        self.assertEqual(lowered("+++.").size, 3)
        self.assertEqual(lowered("[-]").size, 6)
        self.assertEqual(lowered("++++++++[>++++++++<-]>.").size, 17)


class ExpandTests(unittest.TestCase):
    def test_expand_restores_instructions(self) -> None:
        instructions = parse("++++++++[>++++++++<-]>.")
        self.assertEqual(expand(lower(instructions)), instructions)

    def test_to_source(self) -> None:
        self.assertEqual(lowered("set +++ then [ loop - ] print .").to_source(), "+++[-].")

    def test_relowering_is_stable(self) -> None:
        program = lowered("+++[>++<-]>>>,.<<[[-]>]")
        self.assertEqual(lower(expand(program)), program)


if __name__ == "__main__":
    unittest.main()
