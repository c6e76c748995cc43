"""Benchmark helper for change-diff and patch-resolution latency."""
from __future__ import annotations

import argparse
import json
import statistics
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Iterable, Sequence

from pairwatch.context.differ import ChangeDiffer
from pairwatch.context.ingest import build_change_description
from pairwatch.editor.patches import resolve_patch


@dataclass(slots=True)
class BenchmarkResult:
    label: str
    path: Path
    lines: int
    size_bytes: int
    diff_ms: float
    describe_ms: float
    exact_ms: float
    fuzzy_ms: float
    fuzzy_resolved: bool

    @property
    def size_kb(self) -> float:
        return self.size_bytes / 1024


def _default_targets() -> list[Path]:
    root = Path(__file__).resolve().parents[1] / "src" / "pairwatch"
    return sorted(root.rglob("*.py"))


def _time(func, repeat: int) -> float:
    samples: list[float] = []
    for _ in range(max(1, repeat)):
        start = perf_counter()
        func()
        samples.append((perf_counter() - start) * 1000)
    return statistics.median(samples)


def _mutate(text: str) -> str:
    lines = text.split("\n")
    middle = len(lines) // 2
    lines.insert(middle, "# inserted by benchmark")
    return "\n".join(lines)


def _fuzzy_needle(text: str) -> tuple[str, str]:
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        return "", ""
    middle = len(lines) // 2
    window = lines[middle : middle + 3]
    dedented = "\n".join(line.strip() for line in window)
    return dedented, dedented.upper()


def run_benchmark(paths: Iterable[Path], *, repeat: int = 5) -> list[BenchmarkResult]:
    differ = ChangeDiffer()
    results: list[BenchmarkResult] = []
    for path in paths:
        text = path.read_text(encoding="utf-8")
        updated = _mutate(text)
        exact_old = text.split("\n")[len(text.split("\n")) // 2] or text[:20]
        fuzzy_old, fuzzy_new = _fuzzy_needle(text)
        results.append(
            BenchmarkResult(
                label=path.name,
                path=path,
                lines=text.count("\n") + 1,
                size_bytes=len(text.encode("utf-8")),
                diff_ms=_time(lambda: differ.diff(text, updated), repeat),
                describe_ms=_time(lambda: build_change_description(str(path), updated, previous=text), repeat),
                exact_ms=_time(lambda: resolve_patch(text, exact_old, "replacement"), repeat),
                fuzzy_ms=_time(lambda: resolve_patch(text, fuzzy_old, fuzzy_new), repeat),
                fuzzy_resolved=resolve_patch(text, fuzzy_old, fuzzy_new) is not None,
            )
        )
    return results


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("paths", nargs="*", type=Path, help="Files to benchmark (defaults to the package sources)")
    parser.add_argument("--repeat", type=int, default=5, help="Samples per measurement")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of a table")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    results = run_benchmark(args.paths or _default_targets(), repeat=args.repeat)

    if args.json:
        payload = [
            {
                "label": result.label,
                "path": str(result.path),
                "lines": result.lines,
                "size_kb": result.size_kb,
                "diff_ms": result.diff_ms,
                "describe_ms": result.describe_ms,
                "exact_ms": result.exact_ms,
                "fuzzy_ms": result.fuzzy_ms,
                "fuzzy_resolved": result.fuzzy_resolved,
            }
            for result in results
        ]
        print(json.dumps(payload, indent=2))
        return

    if not results:
        print("No files to benchmark.")
        return

    max_label = max(len(result.label) for result in results)
    header = (
        f"{'File':<{max_label}}  {'Lines':>6}  {'Size (KB)':>9}  {'Diff (ms)':>9}  "
        f"{'Describe (ms)':>13}  {'Exact (ms)':>10}  {'Fuzzy (ms)':>10}  Fuzzy hit"
    )
    print(header)
    print("-" * len(header))
    for result in results:
        print(
            f"{result.label:<{max_label}}  "
            f"{result.lines:>6,}  "
            f"{result.size_kb:>9.1f}  "
            f"{result.diff_ms:>9.3f}  "
            f"{result.describe_ms:>13.3f}  "
            f"{result.exact_ms:>10.3f}  "
            f"{result.fuzzy_ms:>10.3f}  "
            f"{'yes' if result.fuzzy_resolved else 'no'}"
        )

    fuzzy = [result.fuzzy_ms for result in results]
    print()
    print(
        "Fuzzy resolution → min: "
        f"{min(fuzzy):.3f} ms · median: {statistics.median(fuzzy):.3f} ms · max: {max(fuzzy):.3f} ms"
    )


if __name__ == "__main__":
    main()
