import textwrap

from bmf_graph.graph_builder import (
    build_graph,
    connected_nodes,
    dangling_references,
    flatten_components,
    flatten_conditions,
    reference_status,
    visible_entity_ids,
)
from bmf_graph.model import GraphEdge
from bmf_graph.parser import parse_document, parse_documents


def graph_of(text: str):
    parsed = parse_document(textwrap.dedent(text).lstrip("\n"))
    return parsed, build_graph(parsed)


def edge_pairs(graph) -> list[tuple[str, str]]:
    return [(e.source, e.target) for e in graph.edges]


def assert_preorder_depths(components) -> None:
    """Every row below depth 0 sits directly under the nearest shallower row."""
    stack: list[int] = []
    for comp in components:
        while stack and stack[-1] >= comp.depth:
            stack.pop()
        expected_parent_depth = comp.depth - 1
        if comp.depth > 0:
            assert stack and stack[-1] == expected_parent_depth, comp
        stack.append(comp.depth)


def test_effect_reference_becomes_edge():
    _, graph = graph_of(
        """
        action:t:finish:
          effects:
            - $screen:t:results
        screen:t:results:
          description: Results
        """
    )
    assert sorted(graph.node_ids()) == ["action:t:finish", "screen:t:results"]
    assert edge_pairs(graph) == [("action:t:finish", "screen:t:results")]

    edge = graph.edges[0]
    assert edge.target_type == "screen"
    assert edge.source_element == "action:t:finish_effect_0"
    assert edge.id == "action:t:finish->screen:t:results"


def test_reference_chain():
    _, graph = graph_of(
        """
        action:a:
          effects:
            - $action:b
        action:b:
          effects:
            - $screen:c
        screen:c:
          components:
            - x
        """
    )
    assert [n.id for n in graph.nodes] == ["action:a", "action:b", "screen:c"]
    assert edge_pairs(graph) == [("action:a", "action:b"), ("action:b", "screen:c")]
    assert graph.node("screen:c").components[0].id == "x"


def test_inline_component_entity_is_never_a_node():
    parsed, graph = graph_of(
        """
        component:inline:card: &card
          type: card
          label: Card
          components:
            - id: card-title
              type: text
              action: $screen:shop:detail
        screen:shop:home:
          components:
            - *card
            - id: more
              type: list
              when: "for each: component:inline:card"
        screen:shop:detail:
          components:
            - id: back
              type: button
        """
    )
    assert "component:inline:card" in parsed.referenced_ids
    assert "component:inline:card" not in graph.node_ids()
    assert all(n.type != "component" for n in graph.nodes)

    home = graph.node("screen:shop:home")
    assert [(c.id, c.type, c.depth) for c in home.components] == [
        ("screen:shop:home_0", "card", 0),
        ("card-title", "text", 1),
        ("more", "list", 0),
    ]
    assert home.components[0].label == "Card"
    assert home.components[1].reference == "screen:shop:detail"

    assert edge_pairs(graph) == [("screen:shop:home", "screen:shop:detail")]
    assert graph.edges[0].source_element == "card-title"


def test_visibility_rules():
    parsed, graph = graph_of(
        """
        entity:shop:user:
          description: data only
        event:shop:paid:
          description: referenced
        screen:shop:empty:
          components: []
        screen:shop:home:
          components:
            - id: pay
              action: $event:shop:paid
        """
    )
    assert visible_entity_ids(parsed) == {"event:shop:paid", "screen:shop:home"}
    paid = graph.node("event:shop:paid")
    assert paid.is_referenced and not paid.has_components
    home = graph.node("screen:shop:home")
    assert home.has_components and not home.is_referenced


def test_edges_only_join_nodes_and_are_unique():
    parsed, graph = graph_of(
        """
        screen:a:home:
          components:
            - id: first
              action: $screen:a:next
            - id: second
              action: $screen:a:next
            - id: gone
              action: $screen:a:missing
            - id: inline
              action: $component:a:widget
          effects:
            - $screen:a:next
        screen:a:next:
          description: Next
          to: $screen:a:home
        component:a:widget:
          type: widget
        """
    )
    node_ids = graph.node_ids()
    for edge in graph.edges:
        assert edge.source in node_ids and edge.target in node_ids

    pairs = edge_pairs(graph)
    assert len(pairs) == len(set(pairs))
    assert pairs == [("screen:a:home", "screen:a:next"), ("screen:a:next", "screen:a:home")]

    anchored, unanchored = graph.edges
    assert anchored.source_element == "first"
    assert unanchored.source_element is None

    dangling = dangling_references(parsed, graph)
    assert {r.target for r in dangling} == {"screen:a:missing", "component:a:widget"}


def test_conditional_effects_flatten_with_branch_depths():
    flat = flatten_conditions(
        [
            {
                "if": "user.ready",
                "then": "$screen:t:go",
                "else": ["$screen:t:wait", "log it"],
            },
            {"unless": "ignored"},
            "$event:t:done",
        ],
        "action:t:check",
        0,
    )
    assert [(c.id, c.type, c.depth, c.reference) for c in flat] == [
        ("action:t:check_cond_0", "condition", 0, None),
        ("action:t:check_cond_0_then", "then", 1, None),
        ("action:t:check_cond_0_then_effect_0", "effect", 2, "screen:t:go"),
        ("action:t:check_cond_0_else", "else", 1, None),
        ("action:t:check_cond_0_else_effect_0", "effect", 2, "screen:t:wait"),
        ("action:t:check_cond_0_else_effect_1", "effect", 2, None),
        ("action:t:check_effect_2", "effect", 0, "event:t:done"),
    ]
    assert flat[0].label == "if: user.ready"
    assert flat[5].label == "log it"
    assert_preorder_depths(flat)


def test_trigger_component_expands_its_conditions():
    parsed, graph = graph_of(
        """
        screen:t:quiz:
          components:
            - id: on-submit
              type: trigger
              value:
                - if: answer.correct
                  then:
                    - $screen:t:next
            - id: footer
              components:
                - id: help
                  type: link
                  value: $dialog:t:help
        screen:t:next:
          description: Next
        dialog:t:help:
          description: Help
        """
    )
    quiz = graph.node("screen:t:quiz")
    assert [(c.id, c.depth) for c in quiz.components] == [
        ("on-submit", 0),
        ("on-submit_cond_0", 1),
        ("on-submit_cond_0_then", 2),
        ("on-submit_cond_0_then_effect_0", 3),
        ("footer", 0),
        ("help", 1),
    ]
    assert_preorder_depths(quiz.components)
    assert quiz.components[5].reference == "dialog:t:help"
    assert edge_pairs(graph) == [
        ("screen:t:quiz", "screen:t:next"),
        ("screen:t:quiz", "dialog:t:help"),
    ]
    assert graph.edges[0].source_element == "on-submit_cond_0_then_effect_0"


def test_flatten_components_handles_empty_input():
    assert flatten_components(None) == []
    assert flatten_components([]) == []


def test_build_graph_is_idempotent():
    parsed = parse_documents(
        {
            "a.yaml": "screen:a:one:\n  effects:\n    - $screen:b:two\n",
            "b.yaml": "screen:b:two:\n  components:\n    - id: back\n      action: $screen:a:one\n",
        }
    )
    first = build_graph(parsed)
    second = build_graph(parsed)
    assert first == second
    assert first.node_ids() == second.node_ids()
    assert first.edge_ids() == second.edge_ids()


def test_connected_nodes_and_reference_status():
    edges = [
        GraphEdge("a", "b", "screen"),
        GraphEdge("c", "a", "screen"),
        GraphEdge("b", "d", "screen"),
    ]
    assert connected_nodes("a", edges) == {"a", "b", "c"}
    assert connected_nodes("z", edges) == {"z"}

    _, graph = graph_of(
        """
        screen:s:home:
          components:
            - id: to-next
              action: $screen:s:next
            - id: to-other
              action: $screen:s:other
            - id: to-nowhere
              action: $screen:s:nowhere
            - id: label
              type: text
        screen:s:next:
          description: Next
        screen:s:other:
          description: Other
        """
    )
    home = graph.node("screen:s:home")
    all_ids = graph.node_ids()
    assert reference_status(home, all_ids) == {
        "to-next": "connected",
        "to-other": "connected",
        "to-nowhere": "dangling",
    }
    assert reference_status(home, all_ids, {"screen:s:home", "screen:s:next"}) == {
        "to-next": "connected",
        "to-other": "filtered",
        "to-nowhere": "dangling",
    }
