import asyncio
import base64

import aiohttp
import pytest

from dwc_player.lyrics_service import (
    NOT_FOUND,
    ConfigurationMissing,
    KugouProxyProvider,
    LocalFileProvider,
    LRCLIBProvider,
    LyricsCache,
    LyricsPayload,
    LyricsProvider,
    LyricsService,
    PayloadKind,
    ProviderChain,
    ProviderUnavailable,
    ResolvedLyrics,
)

from .conftest import FakeResponse, FakeSession

LRCLIB_URL = "https://lrclib.net/api/search"
KUGOU = "http://kugou.test"


class StubProvider(LyricsProvider):
    def __init__(self, name, payload=None, exc=None, configured=True):
        super().__init__(session=None)
        self.name = name
        self.payload = payload if payload is not None else LyricsPayload.empty()
        self.exc = exc
        self.configured = configured
        self.calls = 0

    def check_configured(self, lyrics_asset=None):
        if not self.configured:
            raise ConfigurationMissing(f"{self.name} sin configurar")

    async def fetch(self, title, artist, lyrics_asset=None):
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        return self.payload


def run(coro):
    return asyncio.run(coro)


# --- LRCLIB ---


def test_lrclib_prefers_synced_lyrics():
    session = FakeSession(
        {
            LRCLIB_URL: FakeResponse(
                json_data=[
                    {"syncedLyrics": "[00:01.00]Look at the stars", "plainLyrics": "Look at the stars"},
                    {"syncedLyrics": "[00:09.00]Other"},
                ]
            )
        }
    )
    payload = run(LRCLIBProvider(session).fetch("Yellow", "Coldplay"))

    assert payload.kind == PayloadKind.SYNCED
    assert payload.text == "[00:01.00]Look at the stars"
    assert payload.plain == "Look at the stars"
    assert session.calls[0][2]["params"] == {"q": "Yellow Coldplay"}


def test_lrclib_plain_only_and_empty():
    plain = FakeSession({LRCLIB_URL: FakeResponse(json_data=[{"plainLyrics": "solo texto"}])})
    empty = FakeSession({LRCLIB_URL: FakeResponse(json_data=[])})

    assert run(LRCLIBProvider(plain).fetch("a", "b")) == LyricsPayload.plain_only("solo texto")
    assert run(LRCLIBProvider(empty).fetch("a", "b")).kind == PayloadKind.EMPTY


def test_lrclib_derives_plain_text_from_synced():
    session = FakeSession({LRCLIB_URL: FakeResponse(json_data=[{"syncedLyrics": "[00:01.00]Hola"}])})
    payload = run(LRCLIBProvider(session).fetch("a", "b"))
    assert payload.plain == "Hola"


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(status=500),
        FakeResponse(json_data={"error": "bad"}),
        FakeResponse(json_data=ValueError("not json")),
        FakeResponse(exc=aiohttp.ClientConnectionError("down")),
        FakeResponse(exc=asyncio.TimeoutError()),
    ],
)
def test_lrclib_failures_raise_provider_unavailable(response):
    session = FakeSession({LRCLIB_URL: response})
    with pytest.raises(ProviderUnavailable):
        run(LRCLIBProvider(session).fetch("a", "b"))


def test_lrclib_disabled_is_configuration_missing():
    with pytest.raises(ConfigurationMissing):
        LRCLIBProvider(FakeSession(), enabled=False).check_configured()


# --- Kugou ---


def test_kugou_downloads_first_valid_candidate():
    lrc = "[00:01.00]Hola mundo"
    encoded = base64.b64encode(lrc.encode("utf-8")).decode("ascii")
    session = FakeSession(
        {
            f"{KUGOU}/search": FakeResponse(
                json_data={
                    "candidates": [
                        {"id": "1", "accesskey": "k1"},
                        {"id": "2", "accesskey": "k2"},
                    ]
                }
            ),
            f"{KUGOU}/download": [
                FakeResponse(json_data={"status": 0}),
                FakeResponse(json_data={"status": 1, "content": encoded}),
            ],
        }
    )
    payload = run(KugouProxyProvider(session, proxy_url=KUGOU + "/").fetch("Hola", "Mundo"))

    assert payload == LyricsPayload.synced(lrc)
    downloads = session.calls_to(f"{KUGOU}/download")
    assert [c[2]["params"] for c in downloads] == [
        {"id": "1", "accesskey": "k1"},
        {"id": "2", "accesskey": "k2"},
    ]


def test_kugou_skips_candidate_with_failed_download():
    lrc = "[00:03.00]Segundo"
    encoded = base64.b64encode(lrc.encode("utf-8")).decode("ascii")
    session = FakeSession(
        {
            f"{KUGOU}/search": FakeResponse(
                json_data={
                    "candidates": [
                        {"id": "1", "accesskey": "k1"},
                        {"id": "2", "accesskey": "k2"},
                    ]
                }
            ),
            f"{KUGOU}/download": [
                FakeResponse(status=500),
                FakeResponse(json_data={"status": 1, "content": encoded}),
            ],
        }
    )
    payload = run(KugouProxyProvider(session, proxy_url=KUGOU).fetch("a", "b"))

    assert payload == LyricsPayload.synced(lrc)
    assert len(session.calls_to(f"{KUGOU}/download")) == 2


def test_kugou_all_downloads_failing_is_empty():
    session = FakeSession(
        {
            f"{KUGOU}/search": FakeResponse(json_data={"candidates": [{"id": "1", "accesskey": "k"}]}),
            f"{KUGOU}/download": FakeResponse(exc=aiohttp.ClientConnectionError("down")),
        }
    )
    payload = run(KugouProxyProvider(session, proxy_url=KUGOU).fetch("a", "b"))
    assert payload.kind == PayloadKind.EMPTY


def test_kugou_tries_at_most_three_candidates():
    candidates = [{"id": str(i), "accesskey": "k"} for i in range(5)]
    session = FakeSession(
        {
            f"{KUGOU}/search": FakeResponse(json_data={"candidates": candidates}),
            f"{KUGOU}/download": FakeResponse(json_data={"status": 0}),
        }
    )
    payload = run(KugouProxyProvider(session, proxy_url=KUGOU).fetch("a", "b"))

    assert payload.kind == PayloadKind.EMPTY
    assert len(session.calls_to(f"{KUGOU}/download")) == KugouProxyProvider.MAX_CANDIDATES


def test_kugou_requires_proxy():
    with pytest.raises(ConfigurationMissing):
        KugouProxyProvider(FakeSession()).check_configured()


def test_kugou_decode_falls_back_to_raw_content():
    assert KugouProxyProvider.decode_content("[00:01.00]raw") == "[00:01.00]raw"


# --- Local ---


def test_local_file_relative_to_data_dir(tmp_path):
    (tmp_path / "lrc").mkdir()
    (tmp_path / "lrc" / "song.lrc").write_text("[00:02.00]Local", encoding="utf-8")
    provider = LocalFileProvider(FakeSession(), data_dir=tmp_path)

    payload = run(provider.fetch("t", "a", "lrc/song.lrc"))
    assert payload == LyricsPayload.synced("[00:02.00]Local")


def test_local_file_missing_is_unavailable(tmp_path):
    provider = LocalFileProvider(FakeSession(), data_dir=tmp_path)
    with pytest.raises(ProviderUnavailable):
        run(provider.fetch("t", "a", "missing.lrc"))


def test_local_file_remote_url():
    url = "https://cdn.test/song.lrc"
    provider = LocalFileProvider(FakeSession({url: FakeResponse(text="[00:01.00]Remoto")}))
    assert run(provider.fetch("t", "a", url)).text == "[00:01.00]Remoto"


def test_local_requires_asset():
    with pytest.raises(ConfigurationMissing):
        LocalFileProvider(FakeSession()).check_configured(None)


# --- Cadena ---


def test_chain_falls_back_and_stops_at_first_success():
    first = StubProvider("uno", exc=ProviderUnavailable("caído"))
    second = StubProvider("dos", payload=LyricsPayload.synced("[00:01.00]Hola"))
    third = StubProvider("tres", payload=LyricsPayload.synced("[00:01.00]Nunca"))
    chain = ProviderChain([first, second, third])

    result = run(chain.resolve("t", "a"))

    assert result.source_name == "dos"
    assert [line.text for line in result.document.lines] == ["Hola"]
    assert (first.calls, second.calls, third.calls) == (1, 1, 0)
    assert chain.current_provider == "dos"


def test_chain_skips_unconfigured_and_empty_providers():
    skipped = StubProvider("skip", configured=False)
    empty = StubProvider("vacío")
    broken = StubProvider("roto", exc=RuntimeError("bug"))
    plain = StubProvider("plano", payload=LyricsPayload.plain_only("  solo texto  "))

    result = run(ProviderChain([skipped, empty, broken, plain]).resolve("t", "a"))

    assert skipped.calls == 0
    assert result.source_name == "plano"
    assert result.document.lines == []
    assert result.document.plain_text == "solo texto"


def test_chain_synced_payload_without_lines_needs_plain_text():
    unparsable = StubProvider("x", payload=LyricsPayload.synced("sin timestamps", plain="sin timestamps"))
    garbage = StubProvider("y", payload=LyricsPayload.synced("[00:01.00]"))

    result = run(ProviderChain([garbage, unparsable]).resolve("t", "a"))
    assert result.source_name == "x"
    assert not result.document.is_synced


def test_chain_returns_none_when_all_fail():
    chain = ProviderChain([StubProvider("a"), StubProvider("b", exc=ProviderUnavailable("x"))])
    assert run(chain.resolve("t", "a")) is None
    assert chain.current_provider is None


# --- Caché y servicio ---


def test_cache_key_normalization():
    assert LyricsCache.make_key(" Coldplay ", "YELLOW") == "coldplay|yellow"

    cache = LyricsCache()
    cache.put("A", "B", None)
    assert cache.get("a", "b") is NOT_FOUND
    assert cache.get("a", "c") is None


def make_service(*providers):
    service = LyricsService(session=FakeSession(), providers=list(providers))
    run(service.initialize())
    return service


def test_service_resolves_at_most_once():
    provider = StubProvider("Stub", payload=LyricsPayload.synced("[00:01.00]Hola"))
    service = make_service(provider)

    first = run(service.get_or_resolve("Song", "Artist"))
    second = run(service.get_or_resolve("  song ", "ARTIST"))

    assert provider.calls == 1
    assert isinstance(first, ResolvedLyrics)
    assert first == second
    assert service.provider_info() == {"current": "Stub", "cache_size": 1}


def test_service_caches_not_found():
    provider = StubProvider("Stub")
    service = make_service(provider)

    assert run(service.get_or_resolve("x", "y")) is None
    assert run(service.get_or_resolve("x", "y")) is None
    assert provider.calls == 1


def test_service_clear_cache_forces_new_resolution():
    provider = StubProvider("Stub", payload=LyricsPayload.plain_only("texto"))
    service = make_service(provider)

    run(service.get_or_resolve("x", "y"))
    assert service.clear_cache() == 1
    assert service.cache.size() == 0

    run(service.get_or_resolve("x", "y"))
    assert provider.calls == 2


def test_service_requires_initialize():
    service = LyricsService(session=FakeSession())
    with pytest.raises(RuntimeError):
        run(service.get_or_resolve("x", "y"))


def test_service_does_not_close_injected_session():
    session = FakeSession()
    service = LyricsService(session=session, providers=[])
    run(service.initialize())
    run(service.close())
    assert not session.closed


def test_service_with_injected_providers_opens_no_session():
    service = LyricsService(providers=[StubProvider("Stub")])
    run(service.initialize())

    assert service.session is None
    run(service.close())
