import pytest

from edhighway.lzo import (
    InputOverrunError,
    LookbehindOverrunError,
    LzoError,
    LzoResult,
    OutputOverrunError,
    compress_worst_size,
    decompress,
)

TERMINATOR = b"\x11\x00\x00"


def literal_stream(text: bytes) -> bytes:
    return bytes([17 + len(text)]) + text + TERMINATOR


def test_compress_worst_size_of_empty():
    assert compress_worst_size(0) == 67


@pytest.mark.parametrize("size", [1, 15, 16, 100, 4096, 1 << 20])
def test_compress_worst_size_exceeds_input(size):
    assert compress_worst_size(size) >= size + 67


def test_literal_only_stream():
    assert decompress(literal_stream(b"hello"), 100) == b"hello"


def test_literal_stream_exact_output_size():
    assert decompress(literal_stream(b"hello"), 5) == b"hello"


def test_trailing_input_is_ignored():
    assert decompress(literal_stream(b"hello") + b"\xff\xff", 100) == b"hello"


def test_too_short_input():
    with pytest.raises(InputOverrunError) as info:
        decompress(b"\x11\x00", 10)
    assert info.value.result is LzoResult.INPUT_OVERRUN


def test_output_too_small():
    with pytest.raises(OutputOverrunError) as info:
        decompress(literal_stream(b"hello"), 3)
    assert info.value.result is LzoResult.OUTPUT_OVERRUN
    assert info.value.output == b""


def test_missing_terminator():
    with pytest.raises(InputOverrunError) as info:
        decompress(bytes([22]) + b"hello", 100)
    assert info.value.output == b"hello"


def test_lookbehind_beyond_start():
    stream = bytes([22]) + b"abcde" + bytes([0x40, 0x02]) + TERMINATOR
    with pytest.raises(LookbehindOverrunError) as info:
        decompress(stream, 100)
    assert info.value.result is LzoResult.LOOKBEHIND_OVERRUN
    assert info.value.output == b"abcde"


def test_short_back_reference_overlapping():
    stream = bytes([22]) + b"abcde" + bytes([0x40, 0x00]) + TERMINATOR
    result = decompress(stream, 100)
    assert result == b"abcdeeee"


def test_back_reference_followed_by_literal():
    stream = bytes([22]) + b"abcde" + bytes([0x41, 0x00]) + b"z" + TERMINATOR
    result = decompress(stream, 100)
    assert result.startswith(b"abcde")
    assert result.endswith(b"z")
    assert len(result) == len(b"abcde") + 3 + 1


def test_medium_back_reference():
    stream = bytes([22]) + b"abcde" + bytes([0x21, 0x10, 0x00]) + TERMINATOR
    assert decompress(stream, 100) == b"abcdeabc"


def test_long_literal_run_with_length_byte():
    payload = bytes(range(1, 24))
    stream = b"\x00\x05" + payload + TERMINATOR
    assert decompress(stream, 100) == payload


def test_bad_terminator_length_is_error():
    stream = bytes([22]) + b"hello" + b"\x12\x00\x00"
    with pytest.raises(LzoError) as info:
        decompress(stream, 100)
    assert info.value.result is LzoResult.ERROR
    assert not isinstance(info.value, (InputOverrunError, OutputOverrunError))


def test_back_reference_output_overrun():
    stream = bytes([22]) + b"abcde" + bytes([0x40, 0x00]) + TERMINATOR
    with pytest.raises(OutputOverrunError) as info:
        decompress(stream, 6)
    assert info.value.output == b"abcde"


def test_errors_are_lzo_errors():
    with pytest.raises(LzoError):
        decompress(b"", 10)


def test_accepts_memoryview():
    data = memoryview(literal_stream(b"world"))
    assert decompress(data, 10) == b"world"