import pytest

from vibecoder_agent.core.files import FileNode, FileTree, language_for


def test_file_node_derives_name_and_language():
    node = FileNode.create("./src/components/Button.tsx", "export {}")
    assert node.path == "src/components/Button.tsx"
    assert node.name == "Button.tsx"
    assert node.language == "typescript"


def test_language_for_unknown_extension_is_plaintext():
    assert language_for("README") == "plaintext"
    assert language_for("src/styles.css") == "css"
    assert language_for("src/main.JSX") == "javascript"


def test_size_counts_utf8_bytes():
    assert FileNode.create("a.txt", "é").size == 2


def test_with_file_replaces_only_that_entry():
    tree = FileTree.from_contents(
        {"src/App.tsx": "old", "src/styles.css": "body {}", "index.html": "<div></div>"}
    )
    updated = tree.with_file("src/App.tsx", "new")

    assert updated["src/App.tsx"].content == "new"
    assert updated["src/App.tsx"].name == "App.tsx"
    # untouched entries are the very same objects
    assert updated["src/styles.css"] is tree["src/styles.css"]
    assert updated["index.html"] is tree["index.html"]
    # replaced entry keeps its position
    assert list(updated) == ["src/App.tsx", "src/styles.css", "index.html"]
    # the earlier snapshot is unchanged
    assert tree["src/App.tsx"].content == "old"


def test_with_file_inserts_new_path_at_end():
    tree = FileTree.from_contents({"a.ts": "1"})
    updated = tree.with_file("b/c.json", "{}")
    assert list(updated) == ["a.ts", "b/c.json"]
    assert updated["b/c.json"].language == "json"
    assert len(tree) == 1


def test_tree_is_read_only():
    tree = FileTree.from_contents({"a.ts": "1"})
    with pytest.raises(TypeError):
        tree._files["b.ts"] = FileNode.create("b.ts", "2")  # type: ignore[index]


def test_trees_compare_by_value():
    a = FileTree.from_contents({"x.ts": "1", "y.ts": "2"})
    b = FileTree().with_file("x.ts", "1").with_file("y.ts", "2")
    assert a == b
    assert a.contents() == {"x.ts": "1", "y.ts": "2"}
