from fakes import FakeRuntime
from inferlib.providers.llm.local import Detokenizer
from inferlib.providers.llm.local.detokenize import INITIAL_BUFFER_SIZE


def test_short_piece_uses_initial_buffer():
    runtime = FakeRuntime()
    detok = Detokenizer(runtime)

    assert detok.decode(10) == "<10>"
    assert runtime.piece_calls == [(10, INITIAL_BUFFER_SIZE)]


def test_overflow_retries_once_with_required_size():
    long_piece = b"x" * 300
    runtime = FakeRuntime(vocab={10: long_piece})
    detok = Detokenizer(runtime)

    assert detok.token_bytes(10) == long_piece
    assert runtime.piece_calls == [(10, INITIAL_BUFFER_SIZE), (10, 300)]
    assert detok.buffer_size == 300

    runtime.piece_calls.clear()
    assert detok.decode(10) == "x" * 300
    assert runtime.piece_calls == [(10, 300)]


def test_incomplete_sequence_is_held_back_until_flush():
    runtime = FakeRuntime(vocab={10: b"\xe2\x82"})
    detok = Detokenizer(runtime)

    assert detok.decode(10) == ""
    assert detok.flush() == "\ufffd"
    assert detok.flush() == ""
