import pytest

from switchyard.errors import InvalidRouteContext
from switchyard.pattern import DEFAULT_CAPTURE, ParamTable
from switchyard.table import (
    Node,
    SegmentKind,
    build,
    format_routes,
    insert,
    iter_routes,
)


def home() -> None: ...
def authorize() -> None: ...
def get_user() -> None: ...


def test_insert_root() -> None:
    handler = lambda: "root"  # noqa: E731
    root = Node()
    insert(root, "on", [], handler)
    assert root == Node(entries={"on": handler})


def test_insert_nested() -> None:
    user_handler = lambda: "user"  # noqa: E731
    root = Node()
    insert(root, "get", ["users", ":id"], user_handler)
    expected_tree = Node(
        entries={
            "users": Node(
                segment="users",
                kind=SegmentKind.LITERAL,
                entries={
                    DEFAULT_CAPTURE: Node(
                        segment=":id",
                        kind=SegmentKind.PATTERN,
                        entries={"get": user_handler},
                    )
                },
            )
        }
    )
    assert root == expected_tree


def test_insert_skips_empty_segments() -> None:
    handler = lambda: "users"  # noqa: E731
    tree1, tree2 = Node(), Node()
    insert(tree1, "get", ["", "users", ""], handler)
    insert(tree2, "get", ["users"], handler)
    assert tree1 == tree2


def test_insert_merges_slot() -> None:
    h1 = lambda: 1  # noqa: E731
    h2 = lambda: 2  # noqa: E731
    h3 = lambda: 3  # noqa: E731
    root = Node()
    insert(root, "get", ["a"], h1)
    insert(root, "get", ["a"], h2)
    node = root.entries["a"]
    assert isinstance(node, Node)
    assert node.slot("get") == [h1, h2]
    insert(root, "get", ["a"], h3)
    assert node.slot("get") == [h1, h2, h3]


def test_insert_copies_handler_list() -> None:
    h1 = lambda: 1  # noqa: E731
    h2 = lambda: 2  # noqa: E731
    h3 = lambda: 3  # noqa: E731
    declared = [h1, h2]
    root = Node()
    insert(root, "on", [], declared)
    insert(root, "on", [], h3)
    assert root.slot("on") == [h1, h2, h3]
    assert declared == [h1, h2]


def test_insert_below_handler_raises() -> None:
    root = Node()
    insert(root, "before", [], lambda: None)
    with pytest.raises(InvalidRouteContext, match="'before' is held by a handler"):
        insert(root, "on", ["before"], lambda: None)


def test_insert_method_held_by_route_raises() -> None:
    root = Node()
    insert(root, "get", ["on"], lambda: None)
    with pytest.raises(InvalidRouteContext, match="'on' is held by a nested route"):
        insert(root, "on", [], lambda: None)


def test_node_slot_and_children() -> None:
    handler = lambda: None  # noqa: E731
    root = Node()
    insert(root, "get", ["a"], handler)
    insert(root, "before", [], handler)
    assert root.slot("a") is None
    assert root.slot("before") is handler
    assert [key for key, _ in root.children()] == ["a"]
    assert [key for key, _ in root.slots()] == ["before"]


# --- Build --------------------------------------------------------------------
def test_build_keeps_declaration_order() -> None:
    handler = lambda: None  # noqa: E731
    params = ParamTable()
    params.register("id", r"\d+")
    root = build(
        [("get", ["a"], handler), ("get", [":id"], handler), ("get", ["b"], handler)],
        params,
    )
    assert list(root.entries) == ["a", r"(\d+)", "b"]


def test_build_splits_tokens_with_own_matcher() -> None:
    h1 = lambda: 1  # noqa: E731
    h2 = lambda: 2  # noqa: E731
    declarations = [("get", ["users", ":id"], h1), ("delete", ["users", ":name"], h2)]

    shared = build(declarations)
    users = shared.entries["users"]
    assert isinstance(users, Node)
    assert list(users.entries) == [DEFAULT_CAPTURE]

    params = ParamTable()
    params.register("name", r"\d+")
    split = build(declarations, params)
    users = split.entries["users"]
    assert isinstance(users, Node)
    assert list(users.entries) == [DEFAULT_CAPTURE, r"(\d+)"]
    assert users.entries[r"(\d+)"] == Node(
        segment=":name", kind=SegmentKind.PATTERN, entries={"delete": h2}
    )


def test_build_merges_colliding_keys() -> None:
    h1 = lambda: 1  # noqa: E731
    h2 = lambda: 2  # noqa: E731
    params = ParamTable()
    params.register("id", r"\d+")
    params.register("num", r"\d+")
    root = build([("get", [":id"], h1), ("get", [":num"], h2)], params)

    assert list(root.entries) == [r"(\d+)"]
    node = root.entries[r"(\d+)"]
    assert isinstance(node, Node)
    assert node.segment == ":id"
    assert node.slot("get") == [h1, h2]


# --- Route listing ------------------------------------------------------------
@pytest.fixture
def tree() -> Node:
    root = Node()
    insert(root, "on", [], home)
    insert(root, "before", ["users"], authorize)
    insert(root, "get", ["users", ":id"], get_user)
    return root


def test_iter_routes(tree: Node) -> None:
    assert list(iter_routes(tree)) == [
        ("on", "/", "home"),
        ("before", "/users", "authorize"),
        ("get", "/users/:id", "get_user"),
    ]


def test_iter_routes_labels_lists_and_names() -> None:
    root = Node()
    insert(root, "get", ["a"], [home, "show"])
    assert list(iter_routes(root)) == [("get", "/a", "[home, show]")]


def test_format_routes(tree: Node) -> None:
    expected = "\n".join(
        [
            "on" + " " * 7 + "/" + " " * 12 + "home",
            "before" + " " * 3 + "/users" + " " * 7 + "authorize",
            "get" + " " * 6 + "/users/:id" + " " * 3 + "get_user",
        ]
    )
    assert format_routes(tree) == expected


def test_format_routes_tree(tree: Node) -> None:
    expected = "\n".join(
        [
            "/",
            "├── [on] home",
            "└── users",
            "    ├── [before] authorize",
            "    └── :id",
            "        └── [get] get_user",
        ]
    )
    assert format_routes(tree, tree=True) == expected


def test_format_routes_empty() -> None:
    assert format_routes(Node()) == ""
