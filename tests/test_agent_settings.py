"""Tests for agent settings defaults and the agent store."""

import json
from unittest.mock import MagicMock

import pytest
from neo4j.exceptions import ConstraintError

from common.review_models import Agent, AgentSettings, normalize_agent_settings
from db.agents import AgentStore, set_repositories_for_agent
from db.errors import AgentAlreadyExistsError, AgentNotFoundError
from db.schema import CYPHER_QUERIES


class TestNormalizeAgentSettings:
    @pytest.mark.parametrize("raw", [None, "", "{not json", "[]", 12, {}])
    def test_defaults_materialized(self, raw):
        settings = normalize_agent_settings(raw)
        assert settings == AgentSettings(
            enabled=True, severity_threshold=6, file_type_filters=[], repositories=[]
        )

    def test_camel_case_json_string(self):
        raw = json.dumps({
            "enabled": False,
            "severityThreshold": 8,
            "fileTypeFilters": [".ts", " ", "tsx"],
            "repositories": [" acme/widgets ", ""],
        })
        settings = normalize_agent_settings(raw)
        assert settings.enabled is False
        assert settings.severity_threshold == 8
        assert settings.file_type_filters == [".ts", "tsx"]
        assert settings.repositories == ["acme/widgets"]

    def test_partial_mapping_keeps_other_defaults(self):
        settings = normalize_agent_settings({"repositories": ["acme/widgets"]})
        assert settings.enabled is True
        assert settings.severity_threshold == 6
        assert settings.file_type_filters == []

    def test_threshold_clamped(self):
        assert normalize_agent_settings({"severityThreshold": 40}).severity_threshold == 10
        assert normalize_agent_settings({"severity_threshold": 0}).severity_threshold == 1

    def test_invalid_types_fall_back(self):
        settings = normalize_agent_settings({"enabled": "yes", "repositories": "acme/widgets"})
        assert settings.enabled is True
        assert settings.repositories == []

    def test_agent_model_completes_settings(self):
        agent = Agent(id="a", name="A", settings={"enabled": False})
        assert agent.settings.severity_threshold == 6
        assert agent.evaluation_dimensions.helpfulness is True
        assert agent.variables == ["{code_chunk}", "{file_type}", "{context}"]


def _client_with_tx():
    client = MagicMock()
    tx = MagicMock()
    client.transaction.return_value.__enter__.return_value = tx
    client.transaction.return_value.__exit__.return_value = False
    return client, tx


def _stored_agent(**overrides):
    row = {
        "id": "agent-1",
        "name": "Security",
        "description": "",
        "prompt_html": "Check {code_chunk}",
        "variables": ["{code_chunk}"],
        "evaluation_dimensions": json.dumps({"relevance": False}),
        "settings": json.dumps({"enabled": True, "repositories": ["acme/widgets"]}),
        "created_at": "2026-01-01T00:00:00+00:00",
        "updated_at": "2026-01-01T00:00:00+00:00",
    }
    row.update(overrides)
    return {"agent": row}


class TestAgentStore:
    def test_reads_stored_json_fields(self):
        client = MagicMock()
        client.run_query.return_value = ([_stored_agent()], None, ["agent"])

        agent = AgentStore(client).get_agent("agent-1")

        assert agent.settings.repositories == ["acme/widgets"]
        assert agent.settings.severity_threshold == 6
        assert agent.evaluation_dimensions.relevance is False
        assert agent.evaluation_dimensions.accuracy is True

    def test_malformed_settings_read_as_defaults(self):
        client = MagicMock()
        client.run_query.return_value = ([_stored_agent(settings="oops", variables=None)], None, [])

        agent = AgentStore(client).get_agent("agent-1")

        assert agent.settings == normalize_agent_settings(None)
        assert agent.variables == ["{code_chunk}", "{file_type}", "{context}"]

    def test_missing_agent(self):
        client = MagicMock()
        client.run_query.return_value = ([], None, [])
        assert AgentStore(client).get_agent("nope") is None

    def test_create_writes_settings_and_mapping_in_one_transaction(self):
        client, tx = _client_with_tx()
        client.run_query.return_value = ([_stored_agent()], None, [])
        agent = Agent(id="agent-1", name="Security", settings={"repositories": ["acme/widgets"]})

        AgentStore(client).create_agent(agent)

        queries = [call.args[0] for call in tx.run.call_args_list]
        assert queries == [
            CYPHER_QUERIES["create_agent"],
            CYPHER_QUERIES["clear_agent_repositories"],
            CYPHER_QUERIES["add_agent_repositories"],
        ]
        params = tx.run.call_args_list[0].args[1]
        assert json.loads(params["settings"]) == {
            "enabled": True,
            "severityThreshold": 6,
            "fileTypeFilters": [],
            "repositories": ["acme/widgets"],
        }
        assert params["enabled"] is True

    def test_create_duplicate_id(self):
        client, tx = _client_with_tx()
        tx.run.side_effect = ConstraintError("Agent already exists")

        with pytest.raises(AgentAlreadyExistsError):
            AgentStore(client).create_agent(Agent(id="agent-1", name="Security"))

    def test_update_missing_agent(self):
        client, tx = _client_with_tx()
        tx.run.return_value.single.return_value = {"updated": 0}

        with pytest.raises(AgentNotFoundError):
            AgentStore(client).update_agent(Agent(id="ghost", name="Ghost"))

    def test_delete_reports_existence(self):
        client = MagicMock()
        client.run_query.return_value = ([{"deleted": 1}], None, [])
        assert AgentStore(client).delete_agent("agent-1") is True

        client.run_query.return_value = ([{"deleted": 0}], None, [])
        assert AgentStore(client).delete_agent("agent-1") is False


class TestRepositoryMapping:
    def test_blank_names_dropped_and_trimmed(self):
        tx = MagicMock()
        set_repositories_for_agent(tx, "agent-1", [" acme/widgets ", "", "   ", "acme/gadgets"])

        add_call = tx.run.call_args_list[1]
        assert add_call.args[0] == CYPHER_QUERIES["add_agent_repositories"]
        assert add_call.args[1]["repositories"] == ["acme/widgets", "acme/gadgets"]

    def test_empty_list_only_clears(self):
        tx = MagicMock()
        set_repositories_for_agent(tx, "agent-1", [])
        assert tx.run.call_count == 1
        assert tx.run.call_args.args[0] == CYPHER_QUERIES["clear_agent_repositories"]
