"""Tests for graph models: wire parsing, content dispatch and lookups."""

import pytest
from graph_builders import connect, flow, generated, graph, text_node
from pydantic import ValidationError

from nodeflow.graph import (
    ExecutionSnapshot,
    FileContent,
    GeneratedArtifact,
    Graph,
    StreamArtifact,
    TextContent,
    TextGenerationContent,
    UnknownContent,
    find_artifact,
    find_connection,
    find_node,
    find_step,
)

GRAPH_JSON = {
    "id": "grph_1",
    "nodes": [
        {
            "id": "nd_text",
            "name": "Notes",
            "type": "variable",
            "content": {"type": "text", "text": "Meeting notes"},
        },
        {
            "id": "nd_file",
            "name": "Report",
            "type": "variable",
            "content": {
                "type": "file",
                "data": {
                    "id": "fl_1",
                    "name": "report.pdf",
                    "contentType": "application/pdf",
                    "size": 2048,
                    "status": "completed",
                    "textDataUrl": "https://files.test/fl_1.txt",
                },
            },
        },
        {
            "id": "nd_gen",
            "name": "Summary",
            "type": "action",
            "content": {
                "type": "textGeneration",
                "llm": "openai:gpt-4o",
                "temperature": 0.3,
                "topP": 0.9,
                "instruction": "Summarize",
                "sources": [{"id": "ndh_a", "nodeId": "nd_gen"}],
                "requirement": {"id": "ndh_req", "nodeId": "nd_gen"},
            },
        },
    ],
    "connections": [
        {
            "id": "cnnc_1",
            "sourceNodeId": "nd_text",
            "sourceNodeType": "variable",
            "targetNodeId": "nd_gen",
            "targetNodeHandleId": "ndh_a",
            "targetNodeType": "action",
        }
    ],
    "artifacts": [
        {
            "type": "generatedArtifact",
            "id": "artf_1",
            "creatorNodeId": "nd_gen",
            "createdAt": 1700000000000,
            "object": {
                "type": "text",
                "title": "Old",
                "content": "Old summary",
                "messages": {"plan": "p", "description": "d"},
            },
        }
    ],
    "flows": [
        {
            "id": "flw_1",
            "jobs": [{"id": "jb_1", "steps": [{"id": "stp_1", "nodeId": "nd_gen"}]}],
        }
    ],
}


class TestWireFormat:
    def test_parses_camel_case_graph(self):
        g = Graph.model_validate(GRAPH_JSON)

        assert [n.id for n in g.nodes] == ["nd_text", "nd_file", "nd_gen"]
        assert isinstance(g.nodes[0].content, TextContent)
        assert isinstance(g.nodes[1].content, FileContent)
        assert g.nodes[1].content.data.text_data_url == "https://files.test/fl_1.txt"

        gen = g.nodes[2].content
        assert isinstance(gen, TextGenerationContent)
        assert gen.top_p == 0.9
        assert gen.requirement.id == "ndh_req"
        assert g.connections[0].target_node_handle_id == "ndh_a"

    def test_artifact_union_dispatches_on_type(self):
        g = Graph.model_validate(GRAPH_JSON)
        assert isinstance(g.artifacts[0], GeneratedArtifact)
        assert g.artifacts[0].object.messages.plan == "p"

        streaming = Graph.model_validate(
            {
                "artifacts": [
                    {
                        "type": "streamArtifact",
                        "id": "artf_2",
                        "creatorNodeId": "nd_gen",
                        "object": {"type": "text", "title": "", "content": "par"},
                    }
                ]
            }
        )
        assert isinstance(streaming.artifacts[0], StreamArtifact)

    def test_unknown_content_kind_kept(self):
        g = Graph.model_validate(
            {"nodes": [{"id": "n", "content": {"type": "webSearch", "query": "otters"}}]}
        )

        content = g.nodes[0].content
        assert isinstance(content, UnknownContent)
        assert content.type == "webSearch"
        assert g.to_json_dict()["nodes"][0]["content"] == {"type": "webSearch", "query": "otters"}
        assert Graph.model_validate(g.to_json_dict()) == g

    def test_known_kind_with_bad_fields_rejected(self):
        bad = {"nodes": [{"id": "n", "content": {"type": "text", "text": ["not", "text"]}}]}
        with pytest.raises(ValidationError):
            Graph.model_validate(bad)

    def test_content_without_type_rejected(self):
        with pytest.raises(ValidationError):
            Graph.model_validate({"nodes": [{"id": "n", "content": {"text": "x"}}]})

    def test_dump_uses_camel_case(self):
        g = Graph.model_validate(GRAPH_JSON)
        data = g.to_json_dict()
        assert data["connections"][0]["targetNodeHandleId"] == "ndh_a"
        assert data["nodes"][2]["content"]["topP"] == 0.9
        assert Graph.model_validate(data) == g

    def test_models_are_frozen(self):
        node = text_node("nd_1", "x")
        with pytest.raises(ValidationError):
            node.id = "nd_2"


class TestLookups:
    def test_find_node(self):
        nodes = [text_node("a", "1"), text_node("b", "2")]
        assert find_node(nodes, "b").content.text == "2"
        assert find_node(nodes, "missing") is None
        assert find_node(nodes, None) is None

    def test_find_connection_first_match_wins(self):
        connections = [
            connect("a", "gen", "h1", connection_id="first"),
            connect("b", "gen", "h1", connection_id="second"),
        ]
        found = find_connection(connections, lambda c: c.target_node_handle_id == "h1")
        assert found.id == "first"
        assert find_connection(connections, lambda c: c.target_node_handle_id == "zz") is None

    def test_find_artifact_by_creator(self):
        artifacts = [generated("a", content="A"), generated("b", content="B")]
        assert find_artifact(artifacts, "b").object.content == "B"
        assert find_artifact(artifacts, "c") is None

    def test_find_step_across_flows(self):
        flows = [flow("f1", ("s1", "a")), flow("f2", ("s2", "b"), ("s3", "c"))]
        assert find_step(flows, "s3").node_id == "c"
        assert find_step(flows, "s9") is None

    def test_graph_helpers(self):
        g = graph([text_node("a", "1")], flows=[flow("f1", ("s1", "a"))])
        assert g.get_node("a") is not None
        assert g.get_flow("f1").id == "f1"
        assert g.get_flow("f2") is None
        assert g.get_artifact("a") is None


class TestExecutionSnapshot:
    def test_from_graph_freezes_flow_topology(self):
        g = Graph.model_validate(GRAPH_JSON)
        snapshot = ExecutionSnapshot.from_graph(g, "flw_1")

        assert snapshot.flow.id == "flw_1"
        assert snapshot.nodes == g.nodes
        assert snapshot.connections == g.connections

    def test_from_graph_unknown_flow(self):
        g = Graph.model_validate(GRAPH_JSON)
        assert ExecutionSnapshot.from_graph(g, "flw_missing") is None
