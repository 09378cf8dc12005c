"""Tests for the AGE graph setup script."""

from scripts.setup_age_graph import EDGE_LABELS, VERTEX_LABELS, schema_statements


def test_labels_are_created_before_indexes() -> None:
    statements = schema_statements("entities")

    label_statements = len(VERTEX_LABELS) + len(EDGE_LABELS)
    assert all("create_" in s for s in statements[:label_statements])
    assert all(s.startswith("CREATE INDEX") for s in statements[label_statements:])


def test_statements_target_the_given_graph() -> None:
    statements = schema_statements("my_graph")

    assert "SELECT create_vlabel('my_graph', 'Entity');" in statements
    assert "SELECT create_elabel('my_graph', 'EXTRACTED_FROM');" in statements
    assert any('my_graph."Unit"' in s for s in statements)
