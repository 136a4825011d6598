"""Structural validation of a graph before it is executed or snapshotted."""

from nodeflow.graph.model import Graph, NodeHandleId, TextGenerationContent

KNOWN_PROVIDERS = {"openai", "anthropic", "google", "dev"}


def declared_handles(graph: Graph) -> dict[NodeHandleId, str]:
    """Map every input handle declared on a node to the owning node id."""
    handles: dict[NodeHandleId, str] = {}
    for node in graph.nodes:
        content = node.content
        if isinstance(content, TextGenerationContent):
            for source in content.sources:
                handles[source.id] = node.id
            if content.requirement is not None:
                handles[content.requirement.id] = node.id
    return handles


def find_cycles(graph: Graph) -> list[list[str]]:
    """Return each cycle found in the connection graph as a list of node ids."""
    adjacency: dict[str, list[str]] = {}
    for connection in graph.connections:
        adjacency.setdefault(connection.source_node_id, []).append(connection.target_node_id)

    cycles: list[list[str]] = []
    state: dict[str, int] = {}  # 1 = on stack, 2 = done
    stack: list[str] = []

    def visit(node_id: str) -> None:
        state[node_id] = 1
        stack.append(node_id)
        for target in adjacency.get(node_id, []):
            if state.get(target) == 1:
                cycles.append(stack[stack.index(target) :] + [target])
            elif target not in state:
                visit(target)
        stack.pop()
        state[node_id] = 2

    for node_id in list(adjacency):
        if node_id not in state:
            visit(node_id)
    return cycles


def validate_graph(graph: Graph) -> list[str]:
    """Validate the graph structure. Returns a list of problems, empty if valid."""
    errors = []

    # Check node ids are unique
    seen_ids: set[str] = set()
    for node in graph.nodes:
        if node.id in seen_ids:
            errors.append(f"Duplicate node ID: '{node.id}'")
        seen_ids.add(node.id)

    # Check handle ownership and model selectors
    handles = declared_handles(graph)
    for node in graph.nodes:
        content = node.content
        if not isinstance(content, TextGenerationContent):
            continue
        for handle in [*content.sources, content.requirement]:
            if handle is not None and handle.node_id != node.id:
                errors.append(
                    f"Handle '{handle.id}' on node '{node.id}' claims owner '{handle.node_id}'"
                )
        provider, _, model = content.llm.partition(":")
        if not model:
            errors.append(f"Node '{node.id}' has malformed llm '{content.llm}'")
        elif provider not in KNOWN_PROVIDERS:
            errors.append(f"Node '{node.id}' uses unknown provider '{provider}'")

    # Check connection references
    targeted: dict[NodeHandleId, str] = {}
    for connection in graph.connections:
        if not graph.get_node(connection.source_node_id):
            errors.append(
                f"Connection '{connection.id}' references missing source "
                f"'{connection.source_node_id}'"
            )
        if not graph.get_node(connection.target_node_id):
            errors.append(
                f"Connection '{connection.id}' references missing target "
                f"'{connection.target_node_id}'"
            )
        if connection.target_node_handle_id not in handles:
            errors.append(
                f"Connection '{connection.id}' targets undeclared handle "
                f"'{connection.target_node_handle_id}'"
            )
        if connection.target_node_handle_id in targeted:
            errors.append(
                f"Handle '{connection.target_node_handle_id}' is targeted by both "
                f"'{targeted[connection.target_node_handle_id]}' and '{connection.id}'; "
                "the first connection wins"
            )
        else:
            targeted[connection.target_node_handle_id] = connection.id

    # Check flow steps
    for flow in graph.flows:
        for step in flow.iter_steps():
            if not graph.get_node(step.node_id):
                errors.append(
                    f"Step '{step.id}' in flow '{flow.id}' references missing node "
                    f"'{step.node_id}'"
                )

    for cycle in find_cycles(graph):
        errors.append(f"Cycle detected: {' -> '.join(cycle)}")

    return errors
