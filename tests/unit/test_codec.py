"""Unit tests for the program snapshot format."""
from __future__ import annotations

import io

import pytest

from karlik.errors import ProgramLoadError
from karlik.program import codec
from karlik.program.ast import (
    IDENT_ALPHABET,
    Block,
    Call,
    Condition,
    ConditionType,
    If,
    Intrinsic,
    IntrinsicType,
    Module,
    Procedure,
    Recurse,
    Repeat,
)


def _two_procedure_module() -> Module:
    module = Module()
    walker = Procedure("AAAAAAAA")
    walker.body.append(Intrinsic(IntrinsicType.MOVE))
    walker.body.append(Intrinsic(IntrinsicType.TURN_LEFT))
    caller = Procedure("BBBBBBBB")
    caller.body.append(Call(walker))
    caller.body.append(Intrinsic(IntrinsicType.PUT_WHITE))
    module.append(walker)
    module.append(caller)
    return module


def _every_statement_module() -> Module:
    module = Module()
    helper = Procedure("HELPERPR")
    helper.body.append(Intrinsic(IntrinsicType.PICK_UP))
    main = Procedure("MAINPROC")
    main.body.append(
        If(
            cond=Condition(ConditionType.WALL, negated=True),
            true_block=Block([Intrinsic(IntrinsicType.MOVE)]),
            false_block=Block([Intrinsic(IntrinsicType.TURN_LEFT), Call(helper)]),
        )
    )
    main.body.append(If(cond=Condition(ConditionType.BLACK_TAG)))
    main.body.append(
        Repeat(
            body=Block([Intrinsic(IntrinsicType.PUT_GREY)]),
            count=3,
            start_cond=Condition(ConditionType.TAG, negated=True),
            end_cond=Condition(ConditionType.SOUTH),
        )
    )
    main.body.append(Repeat(body=Block([Intrinsic(IntrinsicType.PUT_BLACK)])))
    main.body.append(Recurse())
    module.append(main)
    module.append(helper)
    return module


def test_dumps_writes_documented_layout():
    text = codec.dumps(_two_procedure_module())

    assert text == (
        "2\n"
        "AAAAAAAA\n"
        "2\n"
        "0 1\n"
        "0 0\n"
        "BBBBBBBB\n"
        "2\n"
        "1 AAAAAAAA\n"
        "0 2\n"
    )


def test_dumps_structured_statements():
    module = Module()
    proc = Procedure("AAAAAAAA")
    proc.body.append(
        If(
            cond=Condition(ConditionType.WALL, negated=True),
            true_block=Block([Intrinsic(IntrinsicType.MOVE)]),
        )
    )
    proc.body.append(Recurse())
    module.append(proc)

    assert codec.dumps(module) == (
        "1\n"
        "AAAAAAAA\n"
        "2\n"
        "2 1 0\n"
        "1\n"
        "0 1\n"
        "0\n"
        "4 R\n"
    )


def test_empty_module_round_trips():
    module = codec.loads(codec.dumps(Module()))

    assert len(module) == 0


def test_round_trip_preserves_every_statement_kind():
    original = _every_statement_module()
    text = codec.dumps(original)

    restored = codec.loads(text)

    assert restored.to_dict() == original.to_dict()
    assert codec.dumps(restored) == text
    call = restored.find("MAINPROC").stmt_by_index(3)
    assert isinstance(call, Call)
    assert call.proc is restored.find("HELPERPR")


def test_dump_and_load_through_file_objects():
    buffer = io.StringIO()
    codec.dump(_two_procedure_module(), buffer)
    buffer.seek(0)

    module = codec.load(buffer)

    assert [proc.ident for proc in module] == ["AAAAAAAA", "BBBBBBBB"]


def test_forward_and_self_calls_resolve():
    text = (
        "2\n"
        "AAAAAAAA\n"
        "2\n"
        "1 BBBBBBBB\n"
        "1 AAAAAAAA\n"
        "BBBBBBBB\n"
        "1\n"
        "0 1\n"
    )

    module = codec.loads(text)

    first, second = list(module)
    calls = list(first.body)
    assert calls[0].proc is second
    assert calls[1].proc is first


@pytest.mark.parametrize(
    "text",
    [
        pytest.param("1\nAAAAAAAA\n1\n5 0\n", id="statement-type"),
        pytest.param("1\nAAAAAAAA\n1\n0 6\n", id="intrinsic-type"),
        pytest.param("1\nAAAAAAAA\n1\n2 0 9\n0\n0\n", id="condition-type"),
        pytest.param("1\nAAAAAAAA\n1\n2 2 0\n0\n0\n", id="negation-flag"),
        pytest.param("1\nAAAAAAAA\n1\n2 0 0\n0\n2\n", id="false-branch-flag"),
        pytest.param("1\nAAAAAAAA\n1\n3 0\n7\n0\n0\n", id="start-condition-flag"),
        pytest.param("1\nAAAAAAAA\n1\n3 0\n0\n0\n3\n", id="end-condition-flag"),
    ],
)
def test_load_rejects_out_of_range_values(text):
    with pytest.raises(ProgramLoadError):
        codec.loads(text)


def test_load_rejects_unknown_call_target():
    text = "1\nAAAAAAAA\n1\n1 ZZZZZZZZ\n"

    with pytest.raises(ProgramLoadError) as excinfo:
        codec.loads(text)

    assert "ZZZZZZZZ" in str(excinfo.value)
    assert excinfo.value.line == 4


def test_load_rejects_duplicate_identifiers():
    text = "2\nAAAAAAAA\n0\nAAAAAAAA\n0\n"

    with pytest.raises(ProgramLoadError) as excinfo:
        codec.loads(text)

    assert excinfo.value.line == 4


@pytest.mark.parametrize(
    "text",
    [
        pytest.param("", id="empty"),
        pytest.param("1\nabcdefgh\n1\n0 1\n", id="lowercase-identifier"),
        pytest.param("1\nAAAA1234\n0\n", id="digit-identifier"),
        pytest.param("2\nAAAAAAAA\n0\n", id="missing-procedure"),
        pytest.param("1\nAAAAAAAA\n2\n0 1\n", id="missing-statement"),
        pytest.param("1\nAAAA\n0\n", id="short-identifier"),
        pytest.param("1\nAAAAAAAAA\n0\n", id="long-identifier"),
        pytest.param("1\nAAAAAAAA\n0\nextra\n", id="trailing-data"),
        pytest.param("x\n", id="not-a-number"),
        pytest.param("1x\n", id="malformed-number"),
        pytest.param("1\nAAAAAAAA\n1\n4 X\n", id="bad-recurse-marker"),
    ],
)
def test_load_rejects_malformed_text(text):
    with pytest.raises(ProgramLoadError):
        codec.loads(text)


def test_reader_reports_line_numbers():
    reader = codec.SnapshotReader("1\n2\nnope\n")
    reader.read_uint()
    reader.read_uint()

    with pytest.raises(ProgramLoadError) as excinfo:
        reader.read_uint("width")

    assert excinfo.value.line == 3
    assert "width" in str(excinfo.value)


def test_reader_reads_signed_integers():
    reader = codec.SnapshotReader("-3 7\n")

    assert reader.read_int() == -3
    assert reader.read_int() == 7
    assert reader.at_end()


def test_writer_refuses_negative_unsigned():
    writer = codec.SnapshotWriter(io.StringIO())

    with pytest.raises(ValueError):
        writer.write_uint(-1)


def test_line_numbers_stay_exact_deep_into_a_snapshot():
    idents = ["PROCAA" + IDENT_ALPHABET[i // 26] + IDENT_ALPHABET[i % 26] for i in range(200)]
    text = "201\n" + "".join(f"{ident}\n0\n" for ident in idents) + "ZZZZZZZZ\n1\n9 0\n"

    with pytest.raises(ProgramLoadError) as excinfo:
        codec.loads(text)

    assert excinfo.value.line == 404
