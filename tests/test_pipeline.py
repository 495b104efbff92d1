"""Tests for the per-page critical CSS pipeline.

Pages are served through ``respx``; the built bundle and manifest live in a
``tmp_path`` project tree.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
import respx
from conftest import BASE_URL, make_config, write_bundle

from critical_css.assets import AssetNotFoundError
from critical_css.config import PageSpec
from critical_css.pipeline import (
    NO_CRITICAL_CSS,
    PageResult,
    RunSummary,
    generate_critical_css,
    output_filename,
    size_kb,
)

_HI_HTML = "<html><head></head><body><h1>Hi</h1></body></html>"
_PLAIN_HTML = "<html><head></head><body><p>Nothing to see</p></body></html>"


def _serve(uri: str, html: str, status: int = 200) -> respx.Route:
    return respx.get(f"{BASE_URL}{uri}").mock(return_value=httpx.Response(status, text=html))


class TestGenerateCriticalCss:
    def test_end_to_end_single_page(self, project: Path) -> None:
        write_bundle(project, "h1 { color: blue; }\n.unused { color: red; }\n")
        config = make_config(project, [PageSpec(uri="/", template="index")])

        with respx.mock:
            _serve("/", _HI_HTML)
            summary = generate_critical_css(config)

        out_file = config.output_dir / "index_critical.min.css"
        assert out_file.read_text(encoding="utf-8") == "h1{color:blue}"
        assert summary.successful == 1
        assert summary.failed == 0
        assert summary.results[0] == PageResult.ok(PageSpec("/", "index"), "0.01")

    def test_existing_styles_are_not_carried_over(self, project: Path) -> None:
        write_bundle(project, "h1 { color: blue }")
        config = make_config(project, [PageSpec(uri="/", template="index")])
        html = (
            '<html><head><style>h1{color:hotpink}</style><link rel="stylesheet" href="/old.css">'
            "</head><body><h1>Hi</h1></body></html>"
        )

        with respx.mock:
            _serve("/", html)
            generate_critical_css(config)

        assert (config.output_dir / "index_critical.min.css").read_text(encoding="utf-8") == "h1{color:blue}"

    def test_soft_failure_does_not_stop_run(self, project: Path) -> None:
        write_bundle(project, "h1 { color: blue }")
        pages = [PageSpec("/plain", "plain"), PageSpec("/", "index")]
        config = make_config(project, pages)

        with respx.mock:
            _serve("/plain", _PLAIN_HTML)
            _serve("/", _HI_HTML)
            summary = generate_critical_css(config)

        assert summary.results[0] == PageResult.failure(pages[0], NO_CRITICAL_CSS)
        assert summary.results[1].success is True
        assert not (config.output_dir / "plain_critical.min.css").exists()
        assert (config.output_dir / "index_critical.min.css").exists()

    def test_fetch_failures_are_page_local(self, project: Path) -> None:
        write_bundle(project, "h1 { color: blue }")
        pages = [
            PageSpec("/missing", "missing"),
            PageSpec("/down", "down"),
            PageSpec("/", "index"),
        ]
        config = make_config(project, pages)

        with respx.mock:
            _serve("/missing", "gone", status=404)
            respx.get(f"{BASE_URL}/down").mock(side_effect=httpx.ConnectError("connection refused"))
            _serve("/", _HI_HTML)
            summary = generate_critical_css(config)

        missing, down, index = summary.results
        assert missing.error == f"Failed to fetch {BASE_URL}/missing: 404 Not Found"
        assert missing.size is None
        assert down.success is False
        assert "connection refused" in down.error
        assert index.success is True
        assert index.error is None
        assert (summary.successful, summary.failed) == (1, 2)

    def test_results_preserve_page_order(self, project: Path) -> None:
        write_bundle(project, "h1 { color: blue }")
        pages = [PageSpec(f"/p{i}", f"t{i}") for i in range(5)]
        config = make_config(project, pages)

        with respx.mock:
            for i, page in enumerate(pages):
                _serve(page.uri, _HI_HTML if i % 2 else _PLAIN_HTML)
            summary = generate_critical_css(config)

        assert [r.page for r in summary.results] == pages
        assert [r.success for r in summary.results] == [False, True, False, True, False]
        assert summary.successful + summary.failed == len(summary.results)

    def test_no_pages(self, project: Path) -> None:
        write_bundle(project, "h1 { color: blue }")
        summary = generate_critical_css(make_config(project, []))
        assert summary == RunSummary(results=())
        assert (summary.successful, summary.failed) == (0, 0)

    def test_shared_template_overwrites(self, project: Path) -> None:
        write_bundle(project, "h1 { color: blue } p { margin: 0 }")
        pages = [PageSpec("/a", "entry"), PageSpec("/b", "entry")]
        config = make_config(project, pages)

        with respx.mock:
            _serve("/a", _HI_HTML)
            _serve("/b", _PLAIN_HTML)
            generate_critical_css(config)

        assert (config.output_dir / "entry_critical.min.css").read_text(encoding="utf-8") == "p{margin:0}"

    def test_nested_template_creates_directories(self, project: Path) -> None:
        write_bundle(project, "h1 { color: blue }")
        config = make_config(project, [PageSpec("/about", "about/index")])

        with respx.mock:
            _serve("/about", _HI_HTML)
            summary = generate_critical_css(config)

        assert summary.successful == 1
        assert (config.output_dir / "about" / "index_critical.min.css").is_file()

    def test_is_idempotent(self, project: Path) -> None:
        write_bundle(project, "@media (min-width: 40em) { h1 { font-size: 2rem } }\nh1 { color: blue }")
        config = make_config(project, [PageSpec("/", "index")])
        out_file = config.output_dir / "index_critical.min.css"

        with respx.mock:
            _serve("/", _HI_HTML)
            generate_critical_css(config)
            first = out_file.read_bytes()
            generate_critical_css(config)

        assert out_file.read_bytes() == first

    def test_uses_fallback_bundle_when_manifest_lacks_entry(self, project: Path) -> None:
        write_bundle(project, "h1 { color: green }", name="assets/main.css", manifest=False)
        config = make_config(project, [PageSpec("/", "index")], app_entry="src/js/missing.ts")

        with respx.mock:
            _serve("/", _HI_HTML)
            summary = generate_critical_css(config)

        assert summary.successful == 1
        assert (config.output_dir / "index_critical.min.css").read_text(encoding="utf-8") == "h1{color:green}"

    def test_missing_bundle_is_fatal_before_any_fetch(self, project: Path) -> None:
        config = make_config(project, [PageSpec("/", "index")])

        with respx.mock(assert_all_called=False) as mock:
            route = mock.get(f"{BASE_URL}/").mock(return_value=httpx.Response(200, text=_HI_HTML))
            with pytest.raises(AssetNotFoundError):
                generate_critical_css(config)

        assert not route.called

    def test_uncreatable_output_dir_is_fatal(self, project: Path) -> None:
        write_bundle(project, "h1 { color: blue }")
        blocker = project / "blocker"
        blocker.write_text("", encoding="utf-8")
        config = make_config(project, [PageSpec("/", "index")], output_dir=blocker / "css")

        with pytest.raises(OSError):
            generate_critical_css(config)

    def test_custom_extraction_options_are_passed_through(self, project: Path) -> None:
        write_bundle(project, "h1 { color: blue }")
        config = make_config(
            project,
            [PageSpec("/", "index")],
            extraction={"preload": "swap", "log_level": "silent"},
        )

        with respx.mock:
            _serve("/", _HI_HTML)
            summary = generate_critical_css(config)

        assert summary.successful == 1

    def test_uses_given_client(self, project: Path) -> None:
        write_bundle(project, "h1 { color: blue }")
        config = make_config(project, [PageSpec("/", "index")])

        with respx.mock:
            route = _serve("/", _HI_HTML)
            with httpx.Client() as client:
                generate_critical_css(config, client=client)

        assert route.call_count == 1


class TestHelpers:
    def test_output_filename(self) -> None:
        assert output_filename(PageSpec("/blog", "blog/_entry")) == "blog/_entry_critical.min.css"

    def test_size_kb(self) -> None:
        assert size_kb("a" * 2048) == "2.00"
        assert size_kb("é" * 512) == "1.00"

    def test_failures_partition(self) -> None:
        ok = PageResult.ok(PageSpec("/", "a"), "1.00")
        bad = PageResult.failure(PageSpec("/b", "b"), "boom")
        summary = RunSummary(results=(ok, bad, ok))
        assert summary.failures == [bad]
        assert (summary.successful, summary.failed) == (2, 1)
