"""Three-way text merge with conflict markers."""

import re
from dataclasses import dataclass

from merge3 import Merge3

START_MARKER = '<<<<<<<'
SEPARATOR_MARKER = '======='
END_MARKER = '>>>>>>>'

_LINE_PATTERN = re.compile(r'[^\n]*\n|[^\n]+')


@dataclass(frozen=True)
class MergeTextResult:
    """Represents the output of a 3-way text merge."""

    is_clean: bool
    merged_text: str


def split_lines(text: str) -> list[str]:
    """Split text into line records that keep their terminators, so that joining them is lossless.

    Only line feeds end a line. Empty text is a single empty line record."""
    return _LINE_PATTERN.findall(text) or ['']


def merge_text(base_text: str, head_text: str, target_text: str,
               head_label: str, target_label: str) -> MergeTextResult:
    """Merge two diverged versions of a text against their common base.

    Regions changed by only one side, or changed identically by both, are taken as they are.
    Every region both sides changed differently is emitted as a conflict block::

        <<<<<<< head_label
        head lines
        =======
        target lines
        >>>>>>> target_label

    A newline is inserted before a marker whenever the text written so far does not end in one.

    :param base_text: The common ancestor version.
    :param head_text: The current ("ours") version.
    :param target_text: The incoming ("theirs") version.
    :param head_label: The label written after the start marker.
    :param target_label: The label written after the end marker.
    :return: The merged text and whether it is free of conflicts."""
    merger = Merge3(split_lines(base_text), split_lines(head_text), split_lines(target_text))

    chunks: list[str] = []
    is_clean = True

    def add_marker(marker: str) -> None:
        written = ''.join(chunks)
        if written and not written.endswith('\n'):
            chunks.append('\n')
        chunks.append(f'{marker}\n')

    for group in merger.merge_groups():
        match group:
            case ('conflict', _, head_lines, target_lines):
                is_clean = False
                add_marker(f'{START_MARKER} {head_label}')
                chunks.extend(head_lines)
                add_marker(SEPARATOR_MARKER)
                chunks.extend(target_lines)
                add_marker(f'{END_MARKER} {target_label}')
            case (_, lines):
                chunks.extend(lines)

    return MergeTextResult(is_clean, ''.join(chunks))
