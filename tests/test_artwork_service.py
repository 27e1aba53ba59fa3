"""
Tests for ArtworkService: caching, atomic writes, bounded concurrency and retries.
"""
import aiohttp
import pytest
from unittest.mock import AsyncMock, call, patch

from http_fakes import FakeResponse, FakeSession
from steamshelf.models import AssetCategory
from steamshelf.services.artwork_service import ArtworkService, image_url


@pytest.fixture
def no_backoff():
    with patch('steamshelf.services.artwork_service._backoff', new_callable=AsyncMock) as backoff:
        yield backoff


def make_service(tmp_path, session, **kwargs):
    return ArtworkService(tmp_path / "assets", session, **kwargs)


def test_initialization_creates_category_dirs(tmp_path):
    service = make_service(tmp_path, FakeSession())
    assert (tmp_path / "assets" / "covers").is_dir()
    assert (tmp_path / "assets" / "artworks").is_dir()
    assert service.get_local_path(AssetCategory.COVER, "co1") == tmp_path / "assets" / "covers" / "co1.jpg"


def test_image_url_uses_category_size():
    assert image_url(AssetCategory.COVER, "co1").endswith("/t_cover_small/co1.jpg")
    assert image_url(AssetCategory.ARTWORK, "ar1").endswith("/t_1080p/ar1.jpg")


@pytest.mark.asyncio
async def test_download_writes_file(tmp_path, no_backoff):
    session = FakeSession([FakeResponse(200, b"jpeg-bytes")])
    service = make_service(tmp_path, session)

    result = await service.download_batch(AssetCategory.COVER, ["co1"])

    path = tmp_path / "assets" / "covers" / "co1.jpg"
    assert result == [("co1", str(path))]
    assert path.read_bytes() == b"jpeg-bytes"
    assert not path.with_suffix('.tmp').exists()
    assert session.calls[0]['url'] == image_url(AssetCategory.COVER, "co1")


@pytest.mark.asyncio
async def test_second_batch_skips_existing_file(tmp_path, no_backoff):
    """Downloading the same ids twice hits the network once."""
    session = FakeSession(lambda c: FakeResponse(200, b"img"))
    service = make_service(tmp_path, session)

    first = await service.download_batch(AssetCategory.ARTWORK, ["ar1"])
    second = await service.download_batch(AssetCategory.ARTWORK, ["ar1"])

    assert len(session.calls) == 1
    assert first == second


@pytest.mark.asyncio
async def test_duplicate_ids_downloaded_once(tmp_path, no_backoff):
    session = FakeSession(lambda c: FakeResponse(200, b"img"))
    service = make_service(tmp_path, session)

    result = await service.download_batch(AssetCategory.COVER, ["co1", "co1", "co2"])

    assert len(session.calls) == 2
    assert sorted(image_id for image_id, _ in result) == ["co1", "co2"]


@pytest.mark.asyncio
async def test_interrupted_transfer_leaves_no_final_file(tmp_path, no_backoff):
    final = tmp_path / "assets" / "covers" / "co1.jpg"
    tmp_file = final.with_suffix('.tmp')
    seen = []

    def record_state():
        seen.append((tmp_file.exists(), final.exists()))

    session = FakeSession(lambda c: FakeResponse(
        200, b"partial", fail_after=aiohttp.ClientPayloadError("connection reset"), on_fail=record_state
    ))
    service = make_service(tmp_path, session)

    result = await service.download_batch(AssetCategory.COVER, ["co1"])

    assert result == []
    # Mid-transfer only the .tmp file exists
    assert seen == [(True, False)] * 3
    assert not final.exists()
    assert not tmp_file.exists()


@pytest.mark.asyncio
async def test_tmp_removed_before_retry(tmp_path, no_backoff):
    final = tmp_path / "assets" / "covers" / "co1.jpg"
    tmp_file = final.with_suffix('.tmp')
    tmp_before_attempt = []

    def respond(c):
        tmp_before_attempt.append(tmp_file.exists())
        if len(tmp_before_attempt) == 1:
            return FakeResponse(200, b"half", fail_after=aiohttp.ClientPayloadError("reset"))
        return FakeResponse(200, b"whole")

    service = make_service(tmp_path, FakeSession(respond))

    result = await service.download_batch(AssetCategory.COVER, ["co1"])

    assert tmp_before_attempt == [False, False]
    assert result == [("co1", str(final))]
    assert final.read_bytes() == b"whole"


@pytest.mark.asyncio
async def test_bounded_concurrency(tmp_path, no_backoff):
    """20 ids never have more than 5 requests in flight."""
    session = FakeSession(lambda c: FakeResponse(200, b"img", delay=0.01))
    service = make_service(tmp_path, session)

    ids = [f"ar{i}" for i in range(20)]
    result = await service.download_batch(AssetCategory.ARTWORK, ids)

    assert len(result) == 20
    assert len(session.calls) == 20
    assert session.max_in_flight == 5


@pytest.mark.asyncio
async def test_retry_then_success_backs_off_1s_then_2s(tmp_path, no_backoff):
    session = FakeSession([
        FakeResponse(500),
        aiohttp.ClientConnectionError("refused"),
        FakeResponse(200, b"img"),
    ])
    service = make_service(tmp_path, session)

    result = await service.download_batch(AssetCategory.COVER, ["co1"])

    assert [image_id for image_id, _ in result] == ["co1"]
    assert len(session.calls) == 3
    assert no_backoff.await_args_list == [call(1), call(2)]


@pytest.mark.asyncio
async def test_always_failing_download_is_dropped_after_three_attempts(tmp_path, no_backoff):
    session = FakeSession(lambda c: FakeResponse(404))
    service = make_service(tmp_path, session)

    result = await service.download_batch(AssetCategory.COVER, ["co1"])

    assert result == []
    assert len(session.calls) == 3
    assert no_backoff.await_count == 2


@pytest.mark.asyncio
async def test_one_failure_does_not_fail_batch(tmp_path, no_backoff):
    def respond(c):
        if "bad" in c['url']:
            return FakeResponse(500)
        return FakeResponse(200, b"img")

    service = make_service(tmp_path, FakeSession(respond))

    result = await service.download_batch(AssetCategory.ARTWORK, ["good1", "bad", "good2"])

    assert sorted(image_id for image_id, _ in result) == ["good1", "good2"]


@pytest.mark.asyncio
async def test_empty_batch_makes_no_requests(tmp_path):
    session = FakeSession()
    service = make_service(tmp_path, session)
    assert await service.download_batch(AssetCategory.COVER, []) == []
    assert session.calls == []


@pytest.mark.asyncio
async def test_clear_all_wipes_cache_and_recreates_dirs(tmp_path):
    service = make_service(tmp_path, FakeSession())
    stale = service.get_local_path(AssetCategory.COVER, "old")
    stale.write_bytes(b"stale")

    await service.clear_all()

    assert not stale.exists()
    assert (tmp_path / "assets" / "covers").is_dir()
    assert list((tmp_path / "assets" / "covers").iterdir()) == []
    assert (tmp_path / "assets" / "artworks").is_dir()
