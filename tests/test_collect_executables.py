"""Tests for the executable collection walk."""

from pathroute import Router


def make(label, calls):
    def executable(ctx=None):
        calls.append(label)

    executable.__name__ = label
    return executable


def test_route_is_terminal_only():
    router = Router()
    handler = make("handler", [])
    router.route("/r", handler)

    assert router.collect_executables(["r"]) == [handler]
    assert router.collect_executables([]) == []


def test_root_middleware_applies_at_any_depth():
    router = Router()
    mw = make("mw", [])
    router.use(mw)
    router.route("/a/b/c", make("deep", []))

    assert router.collect_executables([])[0] is mw
    assert router.collect_executables(["a", "b", "c"])[0] is mw
    assert router.collect_executables(["unknown"]) == [mw]


def test_collection_order_matches_registration():
    calls = []
    router = Router()
    first = make("first", calls)
    branch_mw = make("branch_mw", calls)
    handler = make("handler", calls)
    route_mw_1 = make("route_mw_1", calls)
    route_mw_2 = make("route_mw_2", calls)
    last = make("last", calls)

    router.use(first)
    router.use(branch_mw, "/p")
    router.route("/p", handler).use(route_mw_1).use(route_mw_2)
    router.use(last)

    assert router.collect_executables(["p"]) == [
        first,
        branch_mw,
        route_mw_1,
        route_mw_2,
        handler,
        last,
    ]


def test_route_middleware_only_with_its_route():
    router = Router()
    guard = make("guard", [])
    router.route("/a", make("a", [])).use(guard)
    router.route("/b", make("b", []))

    assert guard in router.collect_executables(["a"])
    assert guard not in router.collect_executables(["b"])


def test_wildcard_matches_single_segment():
    router = Router()
    show = make("show", [])
    router.route("/users/:id", show)

    assert router.collect_executables(["users", "42"]) == [show]
    assert router.collect_executables(["users", "abc"]) == [show]
    assert router.collect_executables(["users", "42", "extra"]) == []
    assert router.collect_executables(["users"]) == []


def test_branch_middleware_runs_without_terminal_route():
    router = Router()
    mw = make("mw", [])
    router.use(mw, "/users")
    router.route("/users/:id", make("show", []))

    assert router.collect_executables(["users", "42", "extra"]) == [mw]


def test_first_registered_sibling_wins_wildcard_first():
    router = Router()
    by_id = make("by_id", [])
    me = make("me", [])
    router.route("/users/:id", by_id)
    router.route("/users/me", me)

    assert router.collect_executables(["users", "me"]) == [by_id]


def test_first_registered_sibling_wins_literal_first():
    router = Router()
    by_id = make("by_id", [])
    me = make("me", [])
    router.route("/users/me", me)
    router.route("/users/:id", by_id)

    assert router.collect_executables(["users", "me"]) == [me]
    assert router.collect_executables(["users", "7"]) == [by_id]


def test_no_backtracking_after_descending():
    router = Router()
    deep = make("deep", [])
    router.group("/users/me")  # literal child without a terminal route
    router.route("/users/:id", deep)

    assert router.collect_executables(["users", "me"]) == []
    assert router.collect_executables(["users", "7"]) == [deep]


def test_non_matching_siblings_are_skipped():
    router = Router()
    target = make("target", [])
    router.route("/a", make("a", []))
    router.route("/b", make("b", []))
    router.route("/c", target)

    assert router.collect_executables(["c"]) == [target]


def test_duplicate_terminal_routes_all_collected_in_order():
    router = Router()
    first = make("first", [])
    second = make("second", [])
    router.route("/dup", first)
    router.route("/dup", second)

    assert router.collect_executables(["dup"]) == [first, second]


def test_collect_entries_expose_metadata():
    router = Router()
    handler = make("handler", [])
    router.route("/users/:id", handler)

    entries = router.collect_entries(["users", "1"])
    assert [entry.name for entry in entries] == ["handler"]
    assert entries[0].path == "users/:id"
    assert entries[0].kind == "handler"


def test_group_collects_relative_to_itself():
    router = Router()
    api = router.group("/api")
    handler = make("handler", [])
    api.route("/ping", handler)

    assert api.collect_executables(["ping"]) == [handler]
    assert router.collect_executables(["api", "ping"]) == [handler]
