#!/usr/bin/env python
"""
Run all tests for the compounding ledger.

Usage (from repo root):
    python run_tests.py            # everything under tests/
    python run_tests.py ladder     # only tests/test_ladder*.py
"""

import os
import sys
import unittest


def main():
    # Get the repo root (where this script lives)
    repo_root = os.path.dirname(os.path.abspath(__file__))
    tests_dir = os.path.join(repo_root, "tests")

    if not os.path.isdir(tests_dir):
        print(f"ERROR: Test folder not found at {tests_dir}")
        sys.exit(1)

    pattern = f"test_{sys.argv[1]}*.py" if len(sys.argv) > 1 else "test_*.py"

    print("=" * 60)
    print(f"Running Ledger Tests ({pattern})...")
    print("=" * 60)
    print()

    sys.path.insert(0, repo_root)
    suite = unittest.defaultTestLoader.discover(tests_dir, pattern=pattern, top_level_dir=repo_root)
    result = unittest.TextTestRunner(verbosity=2).run(suite)

    sys.exit(0 if result.wasSuccessful() else 1)


if __name__ == "__main__":
    main()
