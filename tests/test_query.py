import pytest
from embedded_jsonl_doc_store import (
    And, Database, Eq, FieldMap, Gt, In, IncomparableTypesError, Lt, Or, SortOrder, Text,
    UnknownOp, ValidationError, matches, parse_query, project, sort_records,
)

ANN = {"_id": 1, "name": "Ann", "age": 30, "tags": ["admin", "ops"]}
BO = {"_id": 2, "name": "Bo", "age": 40, "bio": "likes Bo diddley"}


def progress_printer(evt):
    phase = evt.get("phase")
    pct = int(evt.get("pct", 0))
    last = getattr(progress_printer, "_last", {})
    prev = last.get(phase, -1)
    if pct == 100 or pct - prev >= 5 or prev == -1:
        msg = evt.get("msg", "")
        line = f"[progress] {phase} {pct}%"
        if msg:
            line += f" - {msg}"
        print(line, flush=True)
        last[phase] = pct
        progress_printer._last = last


def write_log(path, lines):
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(path)


def test_logical_combinators():
    assert matches(And(()), ANN)
    assert not matches(Or(()), ANN)
    assert matches(FieldMap({}), ANN)
    assert matches(And((FieldMap({"age": Gt(25)}), FieldMap({"name": Eq("Ann")}))), ANN)
    assert not matches(And((FieldMap({"age": Gt(25)}), FieldMap({"name": Eq("Bo")}))), ANN)
    assert matches(Or((FieldMap({"name": Eq("Bo")}), FieldMap({"age": Lt(31)}))), ANN)
    assert not matches(Or((FieldMap({"name": Eq("Bo")}), FieldMap({"age": Lt(30)}))), ANN)
    # nested
    q = Or((And((FieldMap({"age": In((1, 40))}),)), Text("ann")))
    assert matches(q, ANN, {"name"})
    assert matches(q, BO, ())


def test_field_operators():
    assert matches(FieldMap({"age": Eq(30)}), ANN)
    assert matches(FieldMap({"age": Eq(30.0)}), ANN)
    assert not matches(FieldMap({"age": Eq("30")}), ANN)
    assert matches(FieldMap({"age": In((10, 30))}), ANN)
    assert not matches(FieldMap({"age": In(())}), ANN)
    assert matches(FieldMap({"name": Gt("Al"), "age": Lt(35)}), ANN)
    assert matches(FieldMap({"tags": Eq(["admin", "ops"])}), ANN)
    # implicit AND across fields
    assert not matches(FieldMap({"name": Eq("Ann"), "age": Eq(31)}), ANN)


def test_bool_is_not_a_number():
    rec = {"_id": 1, "flag": True, "n": 1}
    assert matches(FieldMap({"flag": Eq(True)}), rec)
    assert not matches(FieldMap({"flag": Eq(1)}), rec)
    assert not matches(FieldMap({"n": In((True,))}), rec)


def test_absent_field_and_unknown_operator_never_match():
    assert not matches(FieldMap({"missing": Eq(None)}), ANN)
    assert not matches(FieldMap({"missing": Gt(0)}), ANN)
    assert not matches(FieldMap({"missing": In((None,))}), ANN)
    assert not matches(FieldMap({"age": UnknownOp("$ne", 1)}), ANN)
    assert not matches(FieldMap({"age": "bogus"}), ANN)
    assert not matches("not a query", ANN)


def test_cross_kind_ordering_is_rejected():
    with pytest.raises(IncomparableTypesError):
        matches(FieldMap({"age": Gt("20")}), ANN)
    with pytest.raises(IncomparableTypesError):
        matches(FieldMap({"name": Lt(5)}), ANN)
    with pytest.raises(TypeError):
        matches(FieldMap({"age": Gt(True)}), ANN)


def test_text_only_inspects_configured_fields():
    assert matches(Text("BO"), BO, {"name"})
    assert matches(Text("diddley"), BO, {"bio"})
    assert not matches(Text("diddley"), BO, {"name"})
    assert not matches(Text("bo"), BO, ())
    # whole tokens only
    assert not matches(Text("an"), ANN, {"name"})
    assert matches(Text("OPS"), ANN, {"tags"})


def test_parse_query_dict_form():
    assert parse_query({}) == FieldMap({})
    assert parse_query({"age": {"$gt": 25}}) == FieldMap({"age": Gt(25)})
    assert parse_query({"name": "Ann"}) == FieldMap({"name": Eq("Ann")})
    assert parse_query({"$text": "bo"}) == Text("bo")
    assert parse_query({"$or": []}) == Or(())
    assert parse_query({"age": {"$in": [1, 2]}}) == FieldMap({"age": In((1, 2))})
    assert parse_query({"age": {"$ne": 1}}) == FieldMap({"age": UnknownOp("$ne", 1)})
    assert parse_query({"age": {"$in": 3}}) == FieldMap({"age": UnknownOp("$in", 3)})

    both = parse_query({"age": {"$gt": 25, "$lt": 35}})
    assert matches(both, ANN)
    assert not matches(both, BO)

    mixed = parse_query({"$text": "ann", "age": {"$eq": 30}})
    assert isinstance(mixed, And)
    assert matches(mixed, ANN, {"name"})
    assert not matches(parse_query({"$nor": []}), ANN)

    node = And(())
    assert parse_query(node) is node


def test_parse_query_rejects_bad_structure():
    with pytest.raises(ValidationError):
        parse_query([{"age": 1}])
    with pytest.raises(ValidationError):
        parse_query({"$and": {"age": 1}})
    with pytest.raises(ValidationError):
        parse_query({"$text": 5})


def test_projection():
    assert project(ANN, None) is ANN
    assert project(ANN, ["name", "nope"]) == {"name": "Ann"}
    once = project(ANN, ["name", "age"])
    assert project(once, ["name", "age"]) == once


def test_sort_is_stable_and_multi_key():
    rows = [
        {"_id": 1, "g": "b", "n": 2},
        {"_id": 2, "g": "a", "n": 2},
        {"_id": 3, "g": "b", "n": 1},
        {"_id": 4, "g": "a", "n": 2},
    ]
    assert sort_records(rows, None) == rows
    got = sort_records(rows, [("n", SortOrder.DESC), ("g", SortOrder.ASC)])
    assert [r["_id"] for r in got] == [2, 4, 1, 3]
    # equal on every key: input order kept, in both directions
    assert [r["_id"] for r in sort_records(rows, [("n", SortOrder.DESC)])] == [1, 2, 4, 3]
    assert [r["_id"] for r in sort_records(rows, [("n", SortOrder.ASC)])] == [3, 1, 2, 4]


def test_sort_missing_values_and_mixed_kinds():
    rows = [{"_id": 1, "k": 5}, {"_id": 2}, {"_id": 3, "k": 1}]
    assert [r["_id"] for r in sort_records(rows, [("k", SortOrder.ASC)])] == [2, 3, 1]
    assert [r["_id"] for r in sort_records(rows, [("k", SortOrder.DESC)])] == [1, 3, 2]
    with pytest.raises(IncomparableTypesError):
        sort_records(rows + [{"_id": 4, "k": "x"}], [("k", SortOrder.ASC)])


@pytest.mark.asyncio
async def test_find_scenario(tmp_path):
    path = write_log(tmp_path / "people.jsonl", [
        'E{"_id":1,"name":"Ann","age":30}',
        'E{"_id":2,"name":"Bo","age":40}',
    ])
    db = Database(path, full_text_fields=["name"], on_progress=progress_printer)

    got = await db.find({"age": {"$gt": 25}})
    assert [r["_id"] for r in got] == [1, 2]

    got = await db.find({}, sort=[["age", -1]])
    assert [r["name"] for r in got] == ["Bo", "Ann"]

    got = await db.find({}, projection=["name"])
    assert got == [{"name": "Ann"}, {"name": "Bo"}]

    got = await db.find({"$text": "bo"})
    assert got == [{"_id": 2, "name": "Bo", "age": 40}]


@pytest.mark.asyncio
async def test_find_sorts_before_projecting(tmp_path):
    path = write_log(tmp_path / "people.jsonl", [
        'E{"_id":1,"name":"Ann","age":30}',
        'E{"_id":2,"name":"Bo","age":40}',
        'E{"_id":3,"name":"Cy","age":35}',
    ])
    db = Database(path)
    got = await db.find({}, sort={"age": "desc"}, projection={"name": 1})
    assert got == [{"name": "Bo"}, {"name": "Cy"}, {"name": "Ann"}]

    with pytest.raises(ValidationError):
        await db.find({}, sort=[("age", 0)])
    with pytest.raises(ValidationError):
        await db.find({}, projection={"name": 0})


@pytest.mark.asyncio
async def test_find_returns_copies(tmp_path):
    path = write_log(tmp_path / "people.jsonl", ['E{"_id":1,"tags":["a"]}'])
    db = Database(path)
    got = await db.find({})
    got[0]["tags"].append("b")
    got[0]["_id"] = 99
    assert await db.find({}) == [{"_id": 1, "tags": ["a"]}]


def test_parse_every_field_operator():
    q = parse_query({"a": {"$eq": 1}, "b": {"$gt": 2}, "c": {"$lt": 3}, "d": {"$in": [4]}})
    assert q == FieldMap({"a": Eq(1), "b": Gt(2), "c": Lt(3), "d": In((4,))})


def test_text_renders_integral_floats_like_json():
    rec = {"_id": 1, "score": 30.0, "big": 1e20, "ratio": 0.5}
    assert matches(Text("30"), rec, {"score"})
    assert not matches(Text("30.0"), rec, {"score"})
    assert matches(Text("100000000000000000000"), rec, {"big"})
    assert matches(Text("0.5"), rec, {"ratio"})
