"""
Tests for mapping event context to process variables.
"""

from trigflow.triggers.variables import default_variables, map_variables


class TestMapVariables:
    """Tests for map_variables."""

    def test_paths_and_literals(self):
        mappings = {"id": "$.entityId", "source": "automation", "n": 3}
        context = {"entityId": "e-1"}

        assert map_variables(mappings, context) == {"id": "e-1", "source": "automation", "n": 3}

    def test_unresolved_paths_omitted(self):
        assert map_variables({"x": "$.nope"}, {}) == {}

    def test_resolved_none_is_kept(self):
        """A present null is a value; only absent paths are dropped."""
        assert map_variables({"x": "$.a"}, {"a": None}) == {"x": None}

    def test_nested_value_copied_whole(self):
        context = {"entity": {"data": {"k": "v"}}}
        assert map_variables({"data": "$.entity.data"}, context) == {"data": {"k": "v"}}

    def test_empty_mappings_use_defaults(self):
        context = {
            "entityId": "e-1",
            "workspaceId": "ws-1",
            "userId": "u-1",
            "triggerType": "status_changed",
            "extra": "ignored",
        }

        assert map_variables({}, context) == {
            "entityId": "e-1",
            "workspaceId": "ws-1",
            "triggeredBy": "u-1",
            "triggerType": "status_changed",
        }


class TestDefaultVariables:
    """Tests for default_variables."""

    def test_triggered_by_falls_back_to_creator(self):
        assert default_variables({"createdById": "u-2"}) == {"triggeredBy": "u-2"}

    def test_absent_sources_left_out(self):
        assert default_variables({}) == {}
