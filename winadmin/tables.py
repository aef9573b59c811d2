"""Fixed-width console tables."""

from __future__ import annotations
from typing import Mapping, Sequence

def print_counter(counter: Mapping, h1: str, h2: str):
    if not counter:
        print("(no data)\n")
        return
    width = max(len(str(k)) for k in list(counter) + [h1])
    print(f"{h1:<{width}} {h2:>8}")
    print("-" * (width + 9))
    for k, v in sorted(counter.items(), key=lambda item: item[1], reverse=True):
        print(f"{k:<{width}} {v:>8}")
    print()

def print_rows(rows: Sequence[Sequence], headers: Sequence[str]):
    if not rows:
        print("(no data)\n")
        return
    widths = [max(len(str(h)), *(len(str(r[i])) for r in rows)) for i, h in enumerate(headers)]
    print(" ".join(f"{h:<{w}}" for h, w in zip(headers, widths)).rstrip())
    print("-" * (sum(widths) + len(widths) - 1))
    for row in rows:
        print(" ".join(f"{str(c):<{w}}" for c, w in zip(row, widths)).rstrip())
    print()
