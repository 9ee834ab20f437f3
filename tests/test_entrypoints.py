"""
Tests for the process entry points.

Config reads the environment when zera_oracle.config is first imported, so
these run in a fresh interpreter where nothing has been imported yet.
"""
import os
import subprocess
import sys
import textwrap

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Stands in for a .env file: load_dotenv is replaced by a function that
# sets the variables a .env would.
SCRIPT = textwrap.dedent("""
    import os
    from unittest import mock
    import dotenv

    def fake_load_dotenv(*args, **kwargs):
        os.environ.update({
            "JWT_SECRET": "from-dotenv",
            "ADMIN_UI_PASSWORD": "from-dotenv-too",
            "ORACLE_DB_PATH": os.environ["TEST_DB_PATH"],
            "START_BACKGROUND_SYSTEMS": "false",
        })
        return True

    with mock.patch.object(dotenv, "load_dotenv", fake_load_dotenv):
        import {module}

    print({module}.app.config["JWT_SECRET"])
""")


def run_entrypoint(module, tmp_path):
    env = {k: v for k, v in os.environ.items() if k not in ("JWT_SECRET", "ADMIN_UI_PASSWORD", "DATABASE_URL")}
    env["PYTHONPATH"] = ROOT
    env["TEST_DB_PATH"] = str(tmp_path / "oracle.sqlite")
    return subprocess.run(
        [sys.executable, "-c", SCRIPT.replace("{module}", module)],
        cwd=str(tmp_path),
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
    )


def test_wsgi_sees_dotenv_settings(tmp_path):
    """Settings that only exist in .env reach the app built by wsgi.py."""
    result = run_entrypoint("wsgi", tmp_path)
    assert result.returncode == 0, result.stderr
    assert result.stdout.strip().splitlines()[-1] == "from-dotenv"


def test_run_sees_dotenv_settings(tmp_path):
    result = run_entrypoint("run", tmp_path)
    assert result.returncode == 0, result.stderr
    assert result.stdout.strip().splitlines()[-1] == "from-dotenv"
