"""
Tests for logic-key dependency analysis.
"""

from backend.formlogic.logic.dependencies import (
    DependencyGraph,
    referenced_key,
    topological_sort,
)


class TestReferencedKey:
    """Tests for mapping variable paths to logic keys."""

    def test_exact_key(self):
        """Test a bare logic key reference."""
        assert referenced_key("isAdult", {"isAdult"}) == "isAdult"

    def test_structured_sub_property(self):
        """Test that 'total.amount' points into 'total'."""
        assert referenced_key("total.amount", ["total"]) == "total"

    def test_field_path_is_not_a_key(self):
        """Test field paths do not match logic keys."""
        assert referenced_key("fields.age.value", {"age"}) is None


class TestDependencyGraph:
    """Tests for DependencyGraph."""

    def test_edges_from_expressions(self):
        """Test direct dependencies and dependents."""
        graph = DependencyGraph.from_expressions({
            "a": "fields.x.value > 1",
            "b": "a and c",
            "c": "true",
        })
        assert graph.dependencies_of("b") == ("a", "c")
        assert graph.dependencies_of("a") == ()
        assert graph.dependents_of("a") == ("b",)

    def test_structured_expressions_contribute_edges(self):
        """Test multi-expression keys and sub-property references."""
        graph = DependencyGraph.from_expressions({
            "total": ("fields.rent.value.amount * 12", "base.currency"),
            "base": ("fields.rent.value.amount", "fields.rent.value.currency"),
            "check": "total.amount > 1000",
        })
        assert graph.dependencies_of("total") == ("base",)
        assert graph.dependencies_of("check") == ("total",)

    def test_unparseable_expression_has_no_edges(self):
        """Test syntax errors do not break graph construction."""
        graph = DependencyGraph.from_expressions({"a": "b >", "b": "true"})
        assert graph.dependencies_of("a") == ()

    def test_transitive_dependencies(self):
        """Test reachability over several hops."""
        graph = DependencyGraph.from_expressions({"a": "b", "b": "c", "c": "true"})
        assert graph.transitive_dependencies("a") == {"b", "c"}
        assert graph.transitive_dependencies("c") == set()

    def test_transitive_dependencies_on_cycle_include_self(self):
        """Test a key on a cycle reaches itself."""
        graph = DependencyGraph.from_expressions({"a": "b", "b": "a"})
        assert graph.transitive_dependencies("a") == {"a", "b"}

    def test_strongly_connected_components(self):
        """Test components come dependencies first."""
        graph = DependencyGraph.from_expressions({
            "top": "x or y",
            "x": "y",
            "y": "x",
        })
        assert graph.strongly_connected_components() == [("x", "y"), ("top",)]


class TestCycles:
    """Tests for cycle detection."""

    def test_two_key_cycle(self):
        """Test A -> B -> A marks both keys."""
        result = topological_sort({"a": "b", "b": "a"})
        assert result.has_cycles is True
        assert result.cyclic_keys == ("a", "b")
        assert result.order == ()

    def test_self_reference(self):
        """Test a key that references itself is cyclic."""
        result = topological_sort({"a": "a + 1", "b": "fields.x.value"})
        assert result.cyclic_keys == ("a",)
        assert result.order == ("b",)

    def test_multi_hop_cycle(self):
        """Test a cycle through three keys."""
        result = topological_sort({
            "a": "b",
            "b": "c",
            "c": "a",
            "d": "fields.x.value",
        })
        assert result.cyclic_keys == ("a", "b", "c")
        assert result.order == ("d",)

    def test_key_downstream_of_cycle_is_ordered(self):
        """Test a key that depends on a cycle is still given a place."""
        result = topological_sort({"a": "b", "b": "a", "c": "a"})
        assert result.cyclic_keys == ("a", "b")
        assert result.order == ("c",)

    def test_acyclic_has_no_cycles(self):
        """Test that a chain reports no cycles."""
        assert topological_sort({"a": "true", "b": "a"}).has_cycles is False


class TestTopologicalOrder:
    """Tests for evaluation order."""

    def test_dependencies_come_first(self):
        """Test that referenced keys are ordered before referencing keys."""
        result = topological_sort({
            "c": "a and b",
            "b": "a",
            "a": "fields.x.value > 1",
        })
        assert result.order == ("a", "b", "c")

    def test_ties_keep_declaration_order(self):
        """Test independent keys keep their declared order."""
        result = topological_sort({
            "c": "a and b",
            "b": "true",
            "a": "true",
        })
        assert result.order == ("b", "a", "c")

    def test_empty_section(self):
        """Test an empty logic section."""
        result = topological_sort({})
        assert result.order == ()
        assert result.cyclic_keys == ()
