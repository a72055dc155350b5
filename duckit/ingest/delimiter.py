"""
Field delimiter detection for delimited text files.

The extension decides when it is unambiguous; otherwise the first line of
the file's leading bytes is scanned for candidate delimiters.
"""

from pathlib import Path
from typing import Dict, Union

PIPE = "|"
TAB = "\t"
COMMA = ","

DEFAULT_SAMPLE_BYTES = 8192

# Extensions that fix the delimiter without looking at the content
EXTENSION_DELIMITERS = {
    ".pipe": PIPE,
    ".psv": PIPE,
    ".tsv": TAB,
}

# Extensions recognised as delimited text
DELIMITED_EXTENSIONS = (".csv", ".tsv", ".txt", ".pipe", ".psv")


def delimiter_for_extension(filename: str):
    """Return the delimiter implied by the file extension, or None."""
    return EXTENSION_DELIMITERS.get(Path(filename).suffix.lower())


def count_candidates(line: str) -> Dict[str, int]:
    """Count each candidate delimiter in a line."""
    return {
        PIPE: line.count(PIPE),
        TAB: line.count(TAB),
        COMMA: line.count(COMMA),
    }


def choose_delimiter(line: str) -> str:
    """
    Choose the delimiter for a header line.

    The highest count wins. Comma is the fallback and wins every tie it is
    part of; a pipe/tab tie goes to pipe.
    """
    counts = count_candidates(line)
    if counts[COMMA] >= max(counts[PIPE], counts[TAB]):
        return COMMA
    if counts[PIPE] >= counts[TAB]:
        return PIPE
    return TAB


def first_line(sample: bytes) -> str:
    text = sample.decode("utf-8", errors="replace")
    # Only \n ends a line; \r, \x1c-\x1e, \x85 and \u2028 stay in the header
    return text.split("\n")[0].rstrip("\r")


def infer_delimiter(
    path: Union[str, Path],
    sample_bytes: int = DEFAULT_SAMPLE_BYTES,
) -> str:
    """
    Infer the field delimiter of a delimited text file.

    Args:
        path: File to inspect
        sample_bytes: Number of leading bytes to read when the extension
            does not decide

    Returns:
        A single-character delimiter
    """
    by_extension = delimiter_for_extension(str(path))
    if by_extension is not None:
        return by_extension

    with open(path, "rb") as f:
        sample = f.read(sample_bytes)

    return choose_delimiter(first_line(sample))
