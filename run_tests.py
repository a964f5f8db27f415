#!/usr/bin/env python3
"""Test runner for Leafpress with coverage reporting."""

import sys
import subprocess
import os
from pathlib import Path

def run_tests():
    """Run all tests with coverage reporting."""

    # Change to the project directory
    os.chdir(Path(__file__).parent)

    print("🧪 Running Leafpress Test Suite")
    print("=" * 50)

    print("\n🔍 Running tests with coverage...")
    try:
        result = subprocess.run([
            sys.executable, "-m", "pytest",
            "tests/",
            "-v",
            "--cov=leafpress",
            "--cov-report=html",
            "--cov-report=term-missing",
        ], check=False)

        if result.returncode == 0:
            print("\n✅ All tests passed!")
            print("📊 Coverage report generated in htmlcov/")
            return True
        else:
            print(f"\n❌ Tests failed with return code {result.returncode}")
            return False

    except Exception as e:
        print(f"❌ Error running tests: {e}")
        return False

def run_build_tests():
    """Run the end-to-end build tests."""
    print("\n🏗️  Running build tests...")
    try:
        result = subprocess.run([
            sys.executable, "-m", "pytest",
            "tests/test_core.py",
            "-v",
            "--durations=10"
        ], check=False)

        if result.returncode == 0:
            print("✅ Build tests passed!")
            return True
        else:
            print("❌ Build tests failed!")
            return False

    except Exception as e:
        print(f"❌ Error running build tests: {e}")
        return False

def main():
    """Main test runner."""
    success = True

    if not run_tests():
        success = False

    if not run_build_tests():
        success = False

    print("\n" + "=" * 50)
    if success:
        print("🎉 All test suites completed successfully!")
        print("📈 Check htmlcov/index.html for detailed coverage report")
    else:
        print("💥 Some tests failed. Please review the output above.")

    return 0 if success else 1

if __name__ == "__main__":
    sys.exit(main())
