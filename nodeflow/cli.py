"""
Command-line interface for nodeflow.

Usage:
    nodeflow run-node graph.json nd_summary
    nodeflow run-step graph.json flw_main stp_1
    nodeflow validate graph.json
    nodeflow deps graph.json nd_summary

Graphs are read from a local JSON file and run as a single local agent.
Quota is checked against an in-memory usage source with no recorded usage.
"""

import argparse
import asyncio
import json
import logging
import sys
import uuid
from pathlib import Path

from nodeflow.config import EngineConfig
from nodeflow.engine import (
    ExecutionEngine,
    InMemoryTeamDirectory,
    InMemoryUsageSource,
    QuotaGate,
    StreamHandle,
    Team,
    UsageLimitQuotaService,
)
from nodeflow.errors import NodeflowError
from nodeflow.graph import Graph, get_depended_nodes, validate_graph
from nodeflow.observability import InMemoryTracingSink, configure_logging
from nodeflow.storage import HttpFileStore, InMemoryGraphStore

logger = logging.getLogger(__name__)

LOCAL_AGENT_ID = "agnt_local"


def _load_graph(path: str) -> Graph:
    return Graph.model_validate_json(Path(path).read_text(encoding="utf-8"))


def _build_engine(graph: Graph, config: EngineConfig, tracing=None) -> ExecutionEngine:
    team = Team(id="tm_local", name="local")
    quota_gate = QuotaGate(
        InMemoryTeamDirectory({LOCAL_AGENT_ID: [team]}),
        UsageLimitQuotaService(InMemoryUsageSource(), config.free_agent_time_limit_minutes),
    )
    return ExecutionEngine(
        graph_store=InMemoryGraphStore({LOCAL_AGENT_ID: graph}),
        file_store=HttpFileStore(timeout=config.http_timeout_seconds),
        quota_gate=quota_gate,
        tracing=tracing,
        config=config,
    )


def _build_tracing(args: argparse.Namespace):
    if args.langfuse:
        from nodeflow.observability.tracing import LangfuseTracingSink

        return LangfuseTracingSink()
    return InMemoryTracingSink()


async def _print_stream(handle: StreamHandle, jsonl: bool) -> int:
    artifact = None
    try:
        async for artifact in handle:
            if jsonl:
                print(json.dumps(artifact.to_json_dict()), flush=True)
    finally:
        await handle.aclose()
    if artifact is not None and not jsonl:
        print(f"# {artifact.title}\n\n{artifact.content}")
    return 0


async def _run_node(args: argparse.Namespace, config: EngineConfig) -> int:
    engine = _build_engine(_load_graph(args.graph), config, _build_tracing(args))
    handle = await engine.execute_by_node(LOCAL_AGENT_ID, args.execution_id, args.node_id)
    return await _print_stream(handle, args.jsonl)


async def _run_step(args: argparse.Namespace, config: EngineConfig) -> int:
    graph = _load_graph(args.graph)
    engine = _build_engine(graph, config, _build_tracing(args))
    handle = await engine.execute_by_step(
        LOCAL_AGENT_ID,
        args.flow_id,
        args.execution_id,
        args.step_id,
        list(graph.artifacts),
    )
    return await _print_stream(handle, args.jsonl)


def cmd_run(args: argparse.Namespace) -> int:
    config = EngineConfig()
    runner = _run_node if args.command == "run-node" else _run_step
    try:
        return asyncio.run(runner(args, config))
    except NodeflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 75 if e.retryable else 1


def cmd_validate(args: argparse.Namespace) -> int:
    problems = validate_graph(_load_graph(args.graph))
    if not problems:
        print("Graph is valid")
        return 0
    for problem in problems:
        print(f"- {problem}")
    return 1


def cmd_deps(args: argparse.Namespace) -> int:
    graph = _load_graph(args.graph)
    max_depth = args.max_depth or EngineConfig().max_dependency_depth
    walk = get_depended_nodes(graph.nodes, graph.connections, args.node_id, max_depth=max_depth)
    for dep in walk.nodes:
        print(f"{dep.depth:>3}  {dep.node_id}  ({dep.node_type})")
    if walk.truncated:
        print(f"(stopped at depth {max_depth})", file=sys.stderr)
    return 0


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--execution-id",
        default=None,
        help="Execution id (default: generated)",
    )
    parser.add_argument(
        "--jsonl",
        action="store_true",
        help="Print every artifact snapshot as a JSON line",
    )
    parser.add_argument(
        "--langfuse",
        action="store_true",
        help="Send generation spans to Langfuse (LANGFUSE_* env vars)",
    )


def main():
    parser = argparse.ArgumentParser(
        prog="nodeflow",
        description="nodeflow - Run text-generation nodes of a workflow graph",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: from config)")
    parser.add_argument(
        "--log-format",
        choices=["auto", "json", "human"],
        default=None,
        help="Log format (default: from config)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_node = subparsers.add_parser("run-node", help="Execute a single node")
    run_node.add_argument("graph", help="Path to graph JSON")
    run_node.add_argument("node_id", help="Node to execute")
    _add_run_options(run_node)
    run_node.set_defaults(func=cmd_run)

    run_step = subparsers.add_parser("run-step", help="Execute one step of a flow")
    run_step.add_argument("graph", help="Path to graph JSON")
    run_step.add_argument("flow_id", help="Flow containing the step")
    run_step.add_argument("step_id", help="Step to execute")
    _add_run_options(run_step)
    run_step.set_defaults(func=cmd_run)

    validate = subparsers.add_parser("validate", help="Check a graph for structural problems")
    validate.add_argument("graph", help="Path to graph JSON")
    validate.set_defaults(func=cmd_validate)

    deps = subparsers.add_parser("deps", help="List the upstream dependencies of a node")
    deps.add_argument("graph", help="Path to graph JSON")
    deps.add_argument("node_id", help="Node whose dependencies to list")
    deps.add_argument("--max-depth", type=int, default=None, help="Walk depth cap")
    deps.set_defaults(func=cmd_deps)

    args = parser.parse_args()

    config = EngineConfig()
    configure_logging(
        level=args.log_level or config.log_level,
        format=args.log_format or config.log_format,
    )
    if getattr(args, "execution_id", "") is None:
        args.execution_id = f"exec_{uuid.uuid4().hex[:12]}"

    if hasattr(args, "func"):
        sys.exit(args.func(args))


if __name__ == "__main__":
    main()
