"""Tests for structural graph validation."""

from graph_builders import connect, flow, generation_node, graph, text_node

from nodeflow.graph import NodeHandle, find_cycles, validate_graph


def valid_graph():
    return graph(
        [text_node("notes", "n"), generation_node("gen", sources=["h1"], llm="openai:gpt-4o")],
        [connect("notes", "gen", "h1")],
        flows=[flow("f1", ("s1", "gen"))],
    )


def test_valid_graph_has_no_problems():
    assert validate_graph(valid_graph()) == []


def test_duplicate_node_ids():
    g = graph([text_node("a", "1"), text_node("a", "2")])
    assert "Duplicate node ID: 'a'" in validate_graph(g)


def test_malformed_and_unknown_llm():
    g = graph(
        [
            generation_node("g1", llm="gpt-4o"),
            generation_node("g2", llm="mistral:large"),
        ]
    )
    problems = validate_graph(g)
    assert "Node 'g1' has malformed llm 'gpt-4o'" in problems
    assert "Node 'g2' uses unknown provider 'mistral'" in problems


def test_handle_owner_mismatch():
    node = generation_node("gen", llm="dev:error")
    content = node.content.model_copy(update={"sources": [NodeHandle(id="h1", node_id="other")]})
    g = graph([node.model_copy(update={"content": content})])
    assert any("claims owner 'other'" in p for p in validate_graph(g))


def test_dangling_connection():
    g = graph(
        [generation_node("gen", sources=["h1"], llm="dev:error")],
        [connect("ghost", "gen", "h1"), connect("gen", "gen", "h_undeclared")],
    )
    problems = validate_graph(g)
    assert any("missing source 'ghost'" in p for p in problems)
    assert any("undeclared handle 'h_undeclared'" in p for p in problems)


def test_handle_targeted_twice():
    g = graph(
        [text_node("a", "1"), text_node("b", "2"), generation_node("gen", sources=["h1"], llm="dev:x")],
        [connect("a", "gen", "h1", "c1"), connect("b", "gen", "h1", "c2")],
    )
    problems = validate_graph(g)
    assert any("targeted by both 'c1' and 'c2'" in p for p in problems)


def test_step_with_missing_node():
    g = graph([text_node("a", "1")], flows=[flow("f1", ("s1", "gone"))])
    assert "Step 's1' in flow 'f1' references missing node 'gone'" in validate_graph(g)


def test_cycle_reported():
    g = graph(
        [generation_node("a", sources=["ha"], llm="dev:x"), generation_node("b", sources=["hb"], llm="dev:x")],
        [connect("a", "b", "hb"), connect("b", "a", "ha")],
    )
    assert find_cycles(g) == [["a", "b", "a"]]
    assert "Cycle detected: a -> b -> a" in validate_graph(g)
