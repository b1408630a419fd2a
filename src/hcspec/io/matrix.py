"""
hcspec.io.matrix

Reader for COSY reconstruction-coefficient ("matrix element") files.

File layout
-----------
! comment lines
 h_ang_slope_x ...        <- focal-plane rotation block, ignored
 ---------------------------------------------
 c0 c1 c2 c3 ijklm        <- one term per line; 4 floats, 5 one-digit exponents
 ...
 ---------------------------------------------

A line counts as read only if it is newline-terminated; a file that ends
before the closing ` ---` marker is an InitError.

Term lines are scanned the way the legacy Fortran/C readers did: fields
that fail to scan stay 0 and the rest of the line is ignored. Pass
strict=True to reject such lines instead.
"""
from __future__ import annotations
from pathlib import Path
from typing import IO, Iterator, List, Optional, Tuple
import re

from hcspec.errors import InitError
from hcspec.physics.transport import TransportMap, TransportTerm

MARKER = " ---"

_FLOAT_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _next_line(lines: Iterator[str]) -> Tuple[bool, str]:
    """Return (good, line) with getline().good() semantics."""
    raw = next(lines, None)
    if raw is None:
        return False, ""
    if not raw.endswith("\n"):
        return False, raw
    return True, raw.rstrip("\r\n")


def scan_term_line(line: str) -> Tuple[List[float], List[int], int]:
    """
    Scan ' %le %le %le %le %1d%1d%1d%1d%1d' from a term line.

    Returns (coeff, exp, n_assigned). Scanning stops at the first field
    that does not convert; unconverted fields stay 0.
    """
    coeff = [0.0, 0.0, 0.0, 0.0]
    exp = [0, 0, 0, 0, 0]
    pos = 0
    n = 0
    for k in range(4):
        while pos < len(line) and line[pos].isspace():
            pos += 1
        m = _FLOAT_RE.match(line, pos)
        if m is None:
            return coeff, exp, n
        coeff[k] = float(m.group(0))
        pos = m.end()
        n += 1
    for k in range(5):
        while pos < len(line) and line[pos].isspace():
            pos += 1
        if pos >= len(line) or not line[pos].isdigit():
            return coeff, exp, n
        exp[k] = int(line[pos])
        pos += 1
        n += 1
    return coeff, exp, n


def parse_transport_lines(
    lines: Iterator[str],
    *,
    strict: bool = False,
    source: str = "<lines>",
) -> TransportMap:
    """Parse an iterator of raw (newline-terminated) lines into a TransportMap."""
    good, line = True, "!"
    while good and line[:1] == "!":
        good, line = _next_line(lines)

    # focal-plane rotation coefficients are not used
    while good and not line.startswith(MARKER):
        good, line = _next_line(lines)

    good, line = _next_line(lines)
    terms: List[TransportTerm] = []
    lineno = 0
    while good and not line.startswith(MARKER):
        lineno += 1
        coeff, exp, n = scan_term_line(line)
        if strict and n != 9:
            raise InitError(
                f"Malformed matrix term #{lineno} in {source}: "
                f"converted {n} of 9 fields in {line!r}"
            )
        terms.append(TransportTerm(coeff=tuple(coeff), exp=tuple(exp)))
        good, line = _next_line(lines)

    if not good:
        raise InitError(f"Error processing reconstruction coefficient file {source}")
    return TransportMap(terms)


def load_transport_map(
    path: str | Path,
    *,
    strict: bool = False,
    diagnostics_level: int = 1,
) -> TransportMap:
    """
    Read a reconstruction coefficient file.

    Raises InitError if the file cannot be opened or ends before the
    closing marker of the term block.
    """
    p = Path(path)
    try:
        fh: IO[str] = open(p, "r", encoding="ascii", errors="replace", newline="")
    except OSError as exc:
        raise InitError(f"error opening reconstruction coefficient file {p}: {exc}") from exc

    with fh:
        tmap = parse_transport_lines(iter(fh), strict=strict, source=str(p))

    if diagnostics_level >= 1:
        print(f"[matrix] Read {len(tmap)} matrix element terms from {p.name}")
    return tmap


def format_term_line(term: TransportTerm) -> str:
    """Render a term in the fixed layout used by the coefficient files."""
    c = " ".join(f"{v:16.9E}" for v in term.coeff)
    e = "".join(str(int(v)) for v in term.exp)
    return f" {c} {e}"


def write_transport_map(
    path: str | Path,
    tmap: TransportMap,
    header: Optional[List[str]] = None,
) -> Path:
    """Write a coefficient file readable by load_transport_map."""
    p = Path(path)
    rule = MARKER + "-" * 60
    with open(p, "w", encoding="ascii", newline="\n") as f:
        for h in header or []:
            f.write(f"! {h}\n")
        f.write(rule + "\n")
        for t in tmap:
            f.write(format_term_line(t) + "\n")
        f.write(rule + "\n")
    return p
