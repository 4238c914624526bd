#!/usr/bin/env python3
"""
Development tasks for crudservice.

    python dev_tasks.py <command> [mongo-url]

The test suite runs against in-memory collections unless a MongoDB replica
set URL is given to ``test-mongo`` (or CRUDSERVICE_TEST_MONGO_URL is set).
"""

import os
import shutil
import subprocess
import sys

SOURCES = "crudservice tests dev_tasks.py"


def run_command(command, check=True, env=None):
    print(f"Running: {command}")
    result = subprocess.run(command, shell=True, check=check, env=env)
    return result.returncode == 0


def clean():
    print("Cleaning build artifacts...")
    for path in ["build", "dist", ".pytest_cache", ".mypy_cache", "htmlcov"]:
        shutil.rmtree(path, ignore_errors=True)
    for name in os.listdir("."):
        if name.endswith(".egg-info"):
            shutil.rmtree(name, ignore_errors=True)
    for root, dirs, _ in os.walk("."):
        if "__pycache__" in dirs:
            shutil.rmtree(os.path.join(root, "__pycache__"), ignore_errors=True)
    print("Clean completed.")


def format_code():
    print("Formatting code...")
    run_command(f"black {SOURCES}")
    run_command(f"isort {SOURCES}")


def lint():
    print("Running linting...")
    ok = run_command("mypy crudservice", check=False)
    ok = run_command(f"flake8 {SOURCES}", check=False) and ok
    if not ok:
        print("Linting failed.")
        sys.exit(1)
    print("Linting passed.")


def test():
    print("Running tests...")
    run_command("pytest tests/ -v --cov=crudservice --cov-report=term")


def test_mongo():
    url = sys.argv[2] if len(sys.argv) > 2 else os.getenv("CRUDSERVICE_TEST_MONGO_URL")
    if not url:
        print("Usage: python dev_tasks.py test-mongo <mongodb-url>")
        sys.exit(1)
    print(f"Running tests against {url}...")
    run_command("pytest tests/ -v", env={**os.environ, "CRUDSERVICE_TEST_MONGO_URL": url})


def build():
    print("Building package...")
    clean()
    run_command("python -m build")


def install_dev():
    print("Installing in development mode...")
    run_command("pip install -e .[dev,test]")


def main():
    commands = {
        "clean": clean,
        "format": format_code,
        "lint": lint,
        "test": test,
        "test-mongo": test_mongo,
        "build": build,
        "install-dev": install_dev,
        "all": lambda: (format_code(), lint(), test(), build()),
    }
    if len(sys.argv) < 2 or sys.argv[1] not in commands:
        print("Usage: python dev_tasks.py <command>")
        print("Commands: " + ", ".join(commands))
        sys.exit(1)
    commands[sys.argv[1]]()


if __name__ == "__main__":
    main()
