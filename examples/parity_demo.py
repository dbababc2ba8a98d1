# examples/parity_demo.py
"""
Run the same matmul on the sequential, parallel and accelerator backends and
check that they agree. The accelerator leg is skipped when no OpenCL device
is present.
"""
import numpy as np

from kernparity.backends import get_backend_manager
from kernparity.data import random_matrix
from kernparity.parity import ParityHarness


def main():
    N = 128
    A = random_matrix(N, N, np.float16, seed=0)
    B = random_matrix(N, N, np.float16, seed=1)

    manager = get_backend_manager()
    names = manager.list_available_backends()
    print(f"available backends: {', '.join(names)}")
    if len(names) < 2:
        print("need at least two backends to compare")
        return

    harness = ParityHarness([manager.get_backend(n) for n in names])
    report = harness.run_matmul(A, B, "matmul_half_float")
    print(f"{N}x{N} float16 matmul: {'OK' if report.ok else 'MISMATCH'}")
    for pair in report.comparisons:
        print(f"  {pair.describe()} (max |diff| {pair.max_abs_diff:g})")


if __name__ == "__main__":
    main()
