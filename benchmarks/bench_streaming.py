"""Repeatable benchmark for streaming-response latency through format_message().

A streamed assistant reply is re-formatted from scratch on every token, so
the cost that matters is format_message() on each growing prefix. This
benchmark builds a realistic reply (thinking, prose, lists, a code fence,
inline and display math, a table) and measures every prefix.

Usage:
    python benchmarks/bench_streaming.py             # default 500 deltas
    python benchmarks/bench_streaming.py --deltas 2000
    python benchmarks/bench_streaming.py --json       # machine-readable output
"""

import argparse
import json
import statistics
import sys
import time
import tracemalloc

from chatfmt.core.message import Role, format_message
from chatfmt.io.perf_logging import is_enabled, set_enabled

REPLY_CHUNKS = [
    "<think>", "The user ", "wants the ", "quadratic ", "formula.", "</think>",
    "###Solving ", "quadratics\n", "For $ax^2 + bx + c = 0$ ", "the roots are:\n",
    "$$x = \\frac{-b \\pm \\sqrt{b^2-4ac}}{2a}$$\n", "Key points: ", "- **Discriminant** ",
    "decides the count ", "- **Vertex** at ", "\\(x = -b/2a\\)\n\n", "```python\n",
    "import math\n", "def roots(a, b, c):\n", "    d = math.sqrt(b*b - 4*a*c)\n",
    "    return (-b + d) / (2*a), (-b - d) / (2*a)\n", "```\n",
    "| a | b | c | roots |\n", "|---|---|---|---|\n", "| 1 | -3 | 2 | 1, 2 |\n",
    "Costs $5 ", "and $10 ", "are not math.\n",
]


def generate_stream(n_deltas: int) -> list[str]:
    """Token-sized chunks of one long reply, cycling the sample content."""
    return [REPLY_CHUNKS[i % len(REPLY_CHUNKS)] for i in range(n_deltas)]


def _percentile(samples: list[float], pct: float) -> float:
    ordered = sorted(samples)
    index = min(len(ordered) - 1, int(round(pct / 100 * (len(ordered) - 1))))
    return ordered[index]


def run_benchmark(n_deltas: int) -> dict:
    """Format every prefix of the stream and return timing results."""
    monitoring = is_enabled()
    set_enabled(False)
    chunks = generate_stream(n_deltas)

    tracemalloc.start()
    mem_before = tracemalloc.get_traced_memory()

    samples_us: list[float] = []
    segment_counts: list[int] = []
    content = ""
    wall_start = time.monotonic_ns()
    for chunk in chunks:
        content += chunk
        started = time.perf_counter_ns()
        message = format_message(content, Role.ASSISTANT)
        samples_us.append((time.perf_counter_ns() - started) / 1000)
        segment_counts.append(len(message.segments))
    wall_elapsed_ns = time.monotonic_ns() - wall_start

    mem_after = tracemalloc.get_traced_memory()
    tracemalloc.stop()
    set_enabled(monitoring)

    return {
        "n_deltas": n_deltas,
        "final_chars": len(content),
        "final_segments": segment_counts[-1] if segment_counts else 0,
        "wall_time_ms": wall_elapsed_ns / 1_000_000,
        "mem_peak_kb": mem_after[1] / 1024,
        "mem_current_kb": mem_after[0] / 1024,
        "mem_before_kb": mem_before[0] / 1024,
        "format": {
            "count": len(samples_us),
            "min_us": round(min(samples_us), 2) if samples_us else 0.0,
            "max_us": round(max(samples_us), 2) if samples_us else 0.0,
            "mean_us": round(statistics.fmean(samples_us), 2) if samples_us else 0.0,
            "p50_us": round(_percentile(samples_us, 50), 2) if samples_us else 0.0,
            "p95_us": round(_percentile(samples_us, 95), 2) if samples_us else 0.0,
            "p99_us": round(_percentile(samples_us, 99), 2) if samples_us else 0.0,
        },
    }


def print_report(results: dict) -> None:
    """Print a human-readable benchmark report."""
    stats = results["format"]
    print(f"\n{'='*60}")
    print("  Streaming Format Benchmark")
    print(f"{'='*60}")
    print(f"  Deltas:     {results['n_deltas']} ({results['final_chars']} chars, "
          f"{results['final_segments']} segments at end)")
    print(f"  Wall time:  {results['wall_time_ms']:.1f} ms")
    print(f"  Memory:     {results['mem_peak_kb']:.0f} KB peak, "
          f"{results['mem_current_kb']:.0f} KB current")
    print()
    print(f"  [format.message] ({stats['count']} samples)")
    print(f"    min={stats['min_us']:.1f}us  "
          f"p50={stats['p50_us']:.1f}us  "
          f"p95={stats['p95_us']:.1f}us  "
          f"p99={stats['p99_us']:.1f}us  "
          f"max={stats['max_us']:.1f}us")
    print(f"\n{'='*60}\n")


def main() -> None:
    parser = argparse.ArgumentParser(description="Streaming format_message benchmark")
    parser.add_argument("--deltas", type=int, default=500,
                        help="Number of streamed chunks (default: 500)")
    parser.add_argument("--json", action="store_true",
                        help="Output machine-readable JSON")
    args = parser.parse_args()

    results = run_benchmark(args.deltas)

    if args.json:
        json.dump(results, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        print_report(results)


if __name__ == "__main__":
    main()
