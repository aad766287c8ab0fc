import logging
import textwrap

import pytest

from fallchain.registry import CapabilityRegistry


IMPLS_MODULE = "fallchain_sample_impls"

IMPLS_SOURCE = textwrap.dedent('''
    """Sample implementations referenced by definitions files in tests."""

    class NetworkError(Exception):
        pass


    def resolve_via_api(args):
        raise NetworkError("dns failure")


    def resolve_static(args):
        version = args.get("version", "26.0")
        return f"https://cdn.example/sandbox/{version}/w1"


    def always_fails(args):
        raise RuntimeError("boom")


    class Namespace:
        @staticmethod
        def nested(args):
            return "nested"


    NOT_CALLABLE = 42
''')


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point FALLCHAIN_HOME at an empty directory and clear env overrides."""
    home = tmp_path / "fallchain_home"
    monkeypatch.setenv("FALLCHAIN_HOME", str(home))
    for var in ("FALLCHAIN_REQUIRED_PLATFORM", "FALLCHAIN_DEFAULT_TIMEOUT", "FALLCHAIN_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    yield home
    # setup_logging() replaces handlers on the package logger; reset between tests
    logger = logging.getLogger("fallchain")
    logger.handlers = []
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def registry():
    return CapabilityRegistry()


@pytest.fixture
def sample_impls(tmp_path, monkeypatch):
    """Write an importable module of sample implementations."""
    module_dir = tmp_path / "impls"
    module_dir.mkdir()
    (module_dir / f"{IMPLS_MODULE}.py").write_text(IMPLS_SOURCE)
    monkeypatch.syspath_prepend(str(module_dir))
    return IMPLS_MODULE


@pytest.fixture
def definitions_file(tmp_path, sample_impls):
    """A definitions file declaring resolve-url and always-fails."""
    path = tmp_path / "operations.yaml"
    path.write_text(textwrap.dedent(f"""
        operations:
          resolve-url:
            description: Resolve the sandbox artifact URL
            implementations:
              - rank: 0
                call: {sample_impls}:resolve_via_api
                description: Query the release API
              - rank: 1
                call: {sample_impls}:resolve_static
                description: Use the pinned static URL
          always-fails:
            implementations:
              - call: {sample_impls}:always_fails
    """))
    return path
