from __future__ import annotations

import pytest

from app.snapshotter import Snapshotter
from domain.codec import decode_snapshot
from domain.errors import ProviderError
from domain.models import MAX_UINT256, Snapshot


def test_capture_combines_target_quantity_and_block(target, fake_provider, make_quote) -> None:
    provider = fake_provider(make_quote(1_000_000, as_of=1234))
    snap = Snapshotter(target).capture(provider)

    assert snap == Snapshot(target=target, quantity=1_000_000, sequence=1234)
    assert provider.calls == [target]


def test_capture_queries_normalized_target(fake_provider, make_quote) -> None:
    provider = fake_provider(make_quote(1))
    Snapshotter("0x00000000000000000000000000000000000000AA").capture(provider)

    assert provider.calls == ["0x00000000000000000000000000000000000000aa"]


def test_capture_is_deterministic(target, fake_provider, make_quote) -> None:
    provider = fake_provider(make_quote(77, 9), make_quote(77, 9))
    s = Snapshotter(target)

    assert s.capture(provider) == s.capture(provider)


def test_provider_error_propagates_without_retry(target, fake_provider, make_quote) -> None:
    provider = fake_provider(ProviderError("rpc down"), make_quote(1))

    with pytest.raises(ProviderError, match="rpc down"):
        Snapshotter(target).capture(provider)
    assert len(provider.calls) == 1


@pytest.mark.parametrize("quantity, as_of", [(-1, 1), (MAX_UINT256 + 1, 1), (1, -1)])
def test_invalid_provider_data_is_provider_error(target, fake_provider, make_quote, quantity, as_of) -> None:
    provider = fake_provider(make_quote(quantity, as_of))

    with pytest.raises(ProviderError):
        Snapshotter(target).capture(provider)


def test_capture_encoded_is_versioned_snapshot(target, fake_provider, make_quote) -> None:
    provider = fake_provider(make_quote(55, 3))
    buf = Snapshotter(target).capture_encoded(provider)

    assert decode_snapshot(buf) == Snapshot(target, 55, 3)


def test_snapshotter_rejects_bad_target() -> None:
    with pytest.raises(ValueError):
        Snapshotter("not-an-address")
