"""Tests for recursive manifest composition."""

import httpx
import pytest

from conftest import HOST, JAN_1, JAN_1_MS, JAN_2, JAN_2_MS, FakeOrigin
from offline_manifest.compose import ManifestComposer, declared_resources
from offline_manifest.errors import CyclicFragmentError, FetchError
from offline_manifest.fetch import FetchCache
from offline_manifest.index import PageRecord
from offline_manifest.paths import get_parent_from_path
from offline_manifest.resolver import EntryResolver

pytestmark = pytest.mark.anyio

PAGE = "/content/screens/lobby"


def composer_for(cache: FetchCache, *pages: PageRecord, now: int = 5) -> ManifestComposer:
    return ManifestComposer(EntryResolver(cache), pages, clock=lambda: now)


def test_declared_resources_trims_and_dedups() -> None:
    page = PageRecord(
        path=PAGE,
        scripts=["/scripts/app.js", "/scripts/app.js"],
        assets=["./media_1.png?width=10"],
        inline_images=["./media_1.png"],
        dependencies=["./keep-dot.json"],
    )
    resources = declared_resources(page, ["/extra.html"])
    assert resources == ["/scripts/app.js", "media_1.png", "./keep-dot.json", "/extra.html"]


async def test_entries_are_unique_and_sorted(origin: FakeOrigin, cache: FetchCache) -> None:
    origin.add(f"{PAGE}.html", last_modified=JAN_1)
    origin.add("/scripts/app.js", last_modified=JAN_1)
    origin.add("/styles/site.css", last_modified=JAN_2)
    origin.add("/content/screens/media_1.png")
    page = PageRecord(
        path=PAGE,
        scripts=["/scripts/app.js", "/scripts/app.js"],
        styles=["/styles/site.css"],
        assets=["./media_1.png?width=100"],
        inline_images=["./media_1.png"],
    )
    manifest = await composer_for(cache, page).compose(HOST, page)
    paths = [entry.path for entry in manifest.entries]
    assert paths == sorted(paths)
    assert len(paths) == len(set(paths))
    assert paths == [f"{PAGE}.html", "/scripts/app.js", "/styles/site.css", "media_1.png"]
    assert manifest.timestamp == JAN_2_MS
    assert manifest.to_dict()["version"] == "3.0"
    assert manifest.to_dict()["contentDelivery"] == {
        "providers": [{"name": "franklin", "endpoint": "/"}],
        "defaultProvider": "franklin",
    }


async def test_relative_media_is_checked_beside_page(
    origin: FakeOrigin, cache: FetchCache
) -> None:
    origin.add(f"{PAGE}.html", last_modified=JAN_1)
    origin.add("/content/screens/media_1234abcd.png")
    page = PageRecord(path=PAGE, assets=["./media_1234abcd.png?width=100"])
    manifest = await composer_for(cache, page).compose(HOST, page)
    by_path = {entry.path: entry for entry in manifest.entries}
    assert by_path["media_1234abcd.png"].hash == "1234abcd"
    assert origin.count("HEAD", "/content/screens/media_1234abcd.png") == 1
    assert origin.count("HEAD", "/media_1234abcd.png") == 0


async def test_missing_resource_does_not_fail_page(origin: FakeOrigin, cache: FetchCache) -> None:
    origin.add(f"{PAGE}.html", last_modified=JAN_1)
    page = PageRecord(path=PAGE, scripts=["/scripts/missing.js"])
    manifest = await composer_for(cache, page).compose(HOST, page)
    assert [entry.path for entry in manifest.entries] == [f"{PAGE}.html"]
    assert manifest.timestamp == JAN_1_MS


async def test_unreachable_page_fails(cache: FetchCache) -> None:
    page = PageRecord(path=PAGE)
    with pytest.raises(FetchError):
        await composer_for(cache, page).compose(HOST, page)


async def test_fragment_media_is_rebased(origin: FakeOrigin, cache: FetchCache) -> None:
    origin.add(f"{PAGE}.html", last_modified=JAN_1)
    origin.add("/frag.html", last_modified=JAN_1)
    origin.add("/frag.plain.html", last_modified=JAN_1)
    origin.add("/media_aaaa.jpg")
    page = PageRecord(path=PAGE, fragments=["/frag"])
    fragment = PageRecord(path="/frag", assets=["media_aaaa.jpg"])
    manifest = await composer_for(cache, page, fragment).compose(HOST, page)

    by_path = {entry.path: entry for entry in manifest.entries}
    rebased = by_path[f"{get_parent_from_path(PAGE)}media_aaaa.jpg"]
    assert rebased.hash == "aaaa"
    assert rebased.timestamp is None
    assert "/frag.html" in by_path
    assert "/frag.plain.html" in by_path
    assert "media_aaaa.jpg" not in by_path


async def test_fragment_timestamp_propagates(origin: FakeOrigin, cache: FetchCache) -> None:
    origin.add(f"{PAGE}.html", last_modified=JAN_1)
    origin.add("/frag.html", last_modified=JAN_1)
    origin.add("/frag.plain.html", last_modified=JAN_1)
    origin.add("/nested.html", last_modified=JAN_1)
    origin.add("/nested.plain.html", last_modified=JAN_2)
    page = PageRecord(path=PAGE, fragments=["/frag"])
    fragment = PageRecord(path="/frag", fragments=["/nested"])
    nested = PageRecord(path="/nested")
    manifest = await composer_for(cache, page, fragment, nested).compose(HOST, page)
    assert manifest.timestamp == JAN_2_MS
    assert all(
        entry.timestamp is None or entry.timestamp <= manifest.timestamp
        for entry in manifest.entries
    )


async def test_timestamp_defaults_to_synthesis_time(origin: FakeOrigin, cache: FetchCache) -> None:
    origin.add(f"{PAGE}.html")
    origin.add("/content/screens/media_1.png")
    page = PageRecord(path=PAGE, assets=["media_1.png"])
    manifest = await composer_for(cache, page, now=1234).compose(HOST, page)
    assert manifest.timestamp == 1234


async def test_freshly_generated_page_uses_synthesis_time(
    origin: FakeOrigin, cache: FetchCache
) -> None:
    origin.add("/scripts/app.js", last_modified=JAN_1)
    page = PageRecord(path=PAGE, scripts=["/scripts/app.js"])
    now = JAN_2_MS + 1
    manifest = await composer_for(cache, page, now=now).compose(
        HOST, page, is_freshly_generated=True
    )
    assert manifest.timestamp == now
    assert manifest.entries[0].timestamp == now
    assert origin.count("HEAD", f"{PAGE}.html") == 0


async def test_fragment_cycle_is_detected(origin: FakeOrigin, cache: FetchCache) -> None:
    origin.add("/a.html")
    origin.add("/b.html")
    origin.add("/b.plain.html")
    origin.add("/a.plain.html")
    page_a = PageRecord(path="/a", fragments=["/b"])
    page_b = PageRecord(path="/b", fragments=["/a"])
    with pytest.raises(CyclicFragmentError) as excinfo:
        await composer_for(cache, page_a, page_b).compose(HOST, page_a)
    assert excinfo.value.chain == ["/a", "/b"]


async def test_shared_fragment_is_not_a_cycle(origin: FakeOrigin, cache: FetchCache) -> None:
    for path in ("/p", "/x", "/y", "/shared"):
        origin.add(f"{path}.html", last_modified=JAN_1)
        origin.add(f"{path}.plain.html", last_modified=JAN_1)
    page = PageRecord(path="/p", fragments=["/x", "/y"])
    first = PageRecord(path="/x", fragments=["/shared"])
    second = PageRecord(path="/y", fragments=["/shared"])
    shared = PageRecord(path="/shared")
    manifest = await composer_for(cache, page, first, second, shared).compose(HOST, page)
    paths = [entry.path for entry in manifest.entries]
    assert paths.count("/shared.html") == 1


async def test_fragment_missing_from_index(origin: FakeOrigin, cache: FetchCache) -> None:
    origin.add(f"{PAGE}.html", last_modified=JAN_1)
    origin.add("/orphan.html", last_modified=JAN_1)
    origin.add("/orphan.plain.html", last_modified=JAN_2)
    page = PageRecord(path=PAGE, fragments=["/orphan"])
    manifest = await composer_for(cache, page).compose(HOST, page)
    assert {entry.path for entry in manifest.entries} == {
        f"{PAGE}.html",
        "/orphan.html",
        "/orphan.plain.html",
    }
    assert manifest.timestamp == JAN_2_MS


async def test_composition_is_idempotent(origin: FakeOrigin) -> None:
    origin.add(f"{PAGE}.html", last_modified=JAN_1)
    origin.add("/scripts/app.js", last_modified=JAN_2)
    origin.add("/frag.html", last_modified=JAN_1)
    origin.add("/frag.plain.html", last_modified=JAN_1)
    origin.add("/media_bb.png")
    page = PageRecord(path=PAGE, scripts=["/scripts/app.js"], fragments=["/frag"])
    fragment = PageRecord(path="/frag", assets=["./media_bb.png"])

    outputs = []
    for _ in range(2):
        async with httpx.AsyncClient(transport=httpx.MockTransport(origin.handler)) as client:
            composer = composer_for(FetchCache(client), page, fragment)
            outputs.append((await composer.compose(HOST, page)).to_json())
    assert outputs[0] == outputs[1]
