"""Tests for fallchain.reporter rendering."""

import json

import pytest
from rich.console import Console

from fallchain.executor import FallbackExecutor
from fallchain.errors import TransientError
from fallchain.reporter import print_result, render, render_json, render_kv
from fallchain.schemas import Cancelled


class NetworkError(Exception):
    pass


def resolve_via_api(args):
    raise NetworkError("dns failure")


def resolve_static(args):
    return "https://cdn.example/sandbox/26.0/w1"


def download(args):
    try:
        raise ConnectionResetError("reset by peer")
    except ConnectionResetError as e:
        raise TransientError("download failed") from e


def not_here(args):
    raise NotImplementedError("no helper on this host")


@pytest.fixture
def fell_back(registry):
    registry.register("resolve-url", resolve_via_api, rank=0, description="release API")
    registry.register("resolve-url", resolve_static, rank=1, description="static URL")
    return FallbackExecutor(registry).execute("resolve-url")


@pytest.fixture
def exhausted(registry):
    registry.register("fetch", download, rank=0, description="mirror")
    registry.register("fetch", not_here, rank=1, description="helper")
    return FallbackExecutor(registry).execute("fetch")


class TestRender:

    def test_preferred_success(self, registry):
        registry.register("op", resolve_static, rank=0, description="static URL")
        text = render(FallbackExecutor(registry).execute("op"))
        assert text.startswith("op: succeeded via rank 0 (static URL)")
        assert "Fell back" not in text

    def test_fallback_lists_earlier_failures(self, fell_back):
        text = render(fell_back)
        assert "succeeded via rank 1 (static URL)" in text
        assert "Fell back after 1 failed attempt(s):" in text
        assert "rank 0 (release API): [network]" in text
        assert "dns failure" in text

    def test_exhausted_lists_every_diagnostic_in_order(self, exhausted):
        text = render(exhausted)
        assert "fetch: exhausted, all 2 implementation(s) failed" in text
        assert text.index("rank 0 (mirror)") < text.index("rank 1 (helper)")
        assert "[transient]" in text
        assert "[not_applicable]" in text

    def test_cause_chain_rendered(self, exhausted):
        text = render(exhausted)
        assert "caused by [network] ConnectionResetError: reset by peer" in text

    def test_cancelled(self):
        text = render(Cancelled("op"))
        assert text.startswith("op: cancelled after 0 attempt(s)")


class TestRenderKV:

    def test_success_keys(self, fell_back):
        lines = render_kv(fell_back).splitlines()
        assert "operation=resolve-url" in lines
        assert "status=succeeded" in lines
        assert "rank=1" in lines
        assert 'implementation="static URL"' in lines
        assert "attempts=2" in lines
        assert "attempt.0.category=network" in lines
        assert 'attempt.0.message="dns failure"' in lines
        assert "attempt.1.status=succeeded" in lines

    def test_every_line_is_key_value(self, exhausted):
        for line in render_kv(exhausted).splitlines():
            key, _, value = line.partition("=")
            assert key and " " not in key
            assert value

    def test_cause_keys(self, exhausted):
        text = render_kv(exhausted)
        assert 'attempt.0.cause.1="ConnectionResetError: reset by peer"' in text


class TestRenderJSON:

    def test_parses(self, exhausted):
        data = json.loads(render_json(exhausted))
        assert data["status"] == "exhausted"
        assert [d["implementation_rank"] for d in data["diagnostics"]] == [0, 1]
        assert data["diagnostics"][0]["cause"]["category"] == "network"

    def test_non_serializable_value(self, registry):
        registry.register("op", lambda args: object(), rank=0)
        data = json.loads(render_json(FallbackExecutor(registry).execute("op"), indent=None))
        assert data["status"] == "succeeded"


class TestPrintResult:

    def _capture(self, result):
        console = Console(record=True, width=160)
        print_result(result, console=console)
        return console.export_text()

    def test_fallback_table(self, fell_back):
        output = self._capture(fell_back)
        assert "resolve-url" in output
        assert "succeeded via rank 1" in output
        assert "dns failure" in output

    def test_exhausted_shows_root_cause(self, exhausted):
        output = self._capture(exhausted)
        assert "exhausted" in output
        assert "root cause: ConnectionResetError: reset by peer" in output

    def test_markup_in_messages_escaped(self, registry):
        def fails(args):
            raise RuntimeError("[bold]not markup[/bold]")

        registry.register("op", fails, rank=0)
        output = self._capture(FallbackExecutor(registry).execute("op"))
        assert "[bold]not markup[/bold]" in output
