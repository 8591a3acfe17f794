"""
Positional diff of two command sequences.

Index i of the baseline is compared with index i of the actual sequence.
An insertion near the start therefore shows up as a run of `modified`
entries for every later index. That is a known limitation; an
alignment-based engine can be swapped in through the DiffEngine protocol.
"""

from typing import Protocol, Sequence

from paintcheck.fingerprint.fingerprint_builder import canonical_json
from paintcheck.shared.schemas import Command, Diff


class DiffEngine(Protocol):
    def __call__(self, baseline: Sequence[Command], actual: Sequence[Command]) -> Diff: ...


def commands_equal(a: Command, b: Command) -> bool:
    return canonical_json([a]) == canonical_json([b])


def diff_commands(baseline: Sequence[Command], actual: Sequence[Command]) -> Diff:
    diff = Diff()
    for index in range(max(len(baseline), len(actual))):
        if index >= len(baseline):
            diff.added.append((index, actual[index]))
        elif index >= len(actual):
            diff.removed.append((index, baseline[index]))
        elif not commands_equal(baseline[index], actual[index]):
            diff.modified.append((index, baseline[index], actual[index]))
    return diff
