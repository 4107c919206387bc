"""Benchmark: Session create/load throughput — operations per second.

Measures how many create+load round-trips can be completed per second
against the in-memory store and a SQLite file.
"""
from __future__ import annotations

import asyncio
import json
import sys
import tempfile
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from persistent_sessions.session.manager import SessionManager
from persistent_sessions.storage.base import AsyncSessionStore
from persistent_sessions.storage.memory import InMemorySessionStore
from persistent_sessions.storage.sqlite import SQLiteSessionStore

_ITERATIONS: dict[str, int] = {"memory": 5_000, "sqlite": 500}


async def _measure(store: AsyncSessionStore, iterations: int) -> list[float]:
    await store.provision()
    manager = SessionManager(store)
    latencies_ms: list[float] = []
    for n in range(iterations):
        t0 = time.perf_counter()
        record = await manager.create_session({"n": n, "user": "bench"})
        await manager.load_session(record.id)
        latencies_ms.append((time.perf_counter() - t0) * 1000)
    return latencies_ms


def bench_session_create_load_throughput(backend: str) -> dict[str, object]:
    """Benchmark SessionManager create+load round-trip throughput.

    Returns
    -------
    dict with keys: operation, backend, iterations, total_seconds,
    ops_per_second, avg_latency_ms, p99_latency_ms.
    """
    iterations = _ITERATIONS[backend]
    with tempfile.TemporaryDirectory() as tmpdir:
        store: AsyncSessionStore
        if backend == "sqlite":
            store = SQLiteSessionStore(db_path=Path(tmpdir) / "bench.db")
        else:
            store = InMemorySessionStore()
        latencies_ms = asyncio.run(_measure(store, iterations))

    total = sum(latencies_ms) / 1000
    sorted_lats = sorted(latencies_ms)
    n = len(sorted_lats)

    result: dict[str, object] = {
        "operation": "session_create_load_throughput",
        "backend": backend,
        "iterations": iterations,
        "total_seconds": round(total, 4),
        "ops_per_second": round(iterations / total, 1),
        "avg_latency_ms": round(sum(latencies_ms) / n, 4),
        "p99_latency_ms": round(sorted_lats[min(int(n * 0.99), n - 1)], 4),
    }
    print(
        f"[bench_session_throughput] {backend}: "
        f"{result['ops_per_second']:,.0f} ops/sec  "
        f"avg {result['avg_latency_ms']:.4f} ms"
    )
    return result


def run_benchmark() -> list[dict[str, object]]:
    """Entry point returning one result dict per backend."""
    return [bench_session_create_load_throughput(name) for name in _ITERATIONS]


if __name__ == "__main__":
    results = run_benchmark()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "throughput_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(results, fh, indent=2)
    print(f"Results saved to {output_path}")
