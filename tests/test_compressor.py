import pytest

from capivara.compressor import compress_zstd, decompress_zstd


@pytest.mark.parametrize(
    "data",
    [b"", b"a", b"hello world", bytes(range(256)) * 50],
)
def test_round_trip(data):
    assert decompress_zstd(compress_zstd(data)) == data


def test_frame_magic():
    assert compress_zstd(b"anything")[:4] == b"\x28\xb5\x2f\xfd"


def test_repetitive_data_shrinks():
    data = b"capivara " * 1000
    assert len(compress_zstd(data)) < len(data)


def test_concatenated_frames():
    joined = compress_zstd(b"first ") + compress_zstd(b"second")
    assert decompress_zstd(joined) == b"first second"


def test_garbage_raises():
    with pytest.raises(ValueError):
        decompress_zstd(b"this is not zstd data at all")