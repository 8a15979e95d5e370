"""
Tests for the model catalog and effective model resolution.
"""

import pytest

from vault_agent.config import AgentSettings
from vault_agent.models import DEFAULT_MODELS, ModelCatalog, ModelInfo, ModelRole, resolve_model_config
from vault_agent.Sessions.session_models import SessionModelConfig


@pytest.mark.parametrize("role,expected", [
    (ModelRole.CHAT, "gemini-2.5-pro"),
    (ModelRole.SUMMARY, "gemini-2.5-flash"),
    (ModelRole.REWRITE, "gemini-2.5-flash"),
    (ModelRole.COMPLETIONS, "gemini-2.5-flash-lite-preview-06-17"),
    (ModelRole.IMAGE, "gemini-2.5-flash-image-preview"),
])
def test_role_defaults(role, expected):
    assert ModelCatalog().default_model_for_role(role) == expected


def test_fallback_to_first_model():
    catalog = ModelCatalog([ModelInfo("only-model", "Only")])
    assert catalog.default_model_for_role(ModelRole.SUMMARY) == "only-model"


def test_empty_catalog_raises():
    with pytest.raises(ValueError):
        ModelCatalog([]).default_model_for_role(ModelRole.CHAT)


def test_image_support_flag():
    catalog = ModelCatalog()
    assert catalog.get("gemini-2.5-flash-image-preview").supports_image_generation
    assert catalog.get("missing") is None
    assert catalog.with_models(DEFAULT_MODELS[:1]).models == DEFAULT_MODELS[:1]


class TestUpdatedModelSettings:

    def test_stale_models_are_replaced(self):
        result = ModelCatalog().get_updated_model_settings({"chat": "gemini-1.0-pro", "summary": "gemini-2.5-flash"})
        assert result.settings_changed
        assert result.model_defaults["chat"] == "gemini-2.5-pro"
        assert result.model_defaults["completions"] == "gemini-2.5-flash-lite-preview-06-17"
        assert "Chat model: 'gemini-1.0-pro' -> 'gemini-2.5-pro' (legacy model update)" in result.changed_settings_info
        assert len(result.changed_settings_info) == 2

    def test_current_models_are_kept(self):
        current = {
            "chat": "gemini-2.5-pro",
            "summary": "gemini-2.5-flash",
            "completions": "gemini-2.5-flash-lite-preview-06-17",
        }
        result = ModelCatalog().get_updated_model_settings(current)
        assert not result.settings_changed
        assert result.model_defaults == current


class TestResolveModelConfig:

    def test_defaults_without_session(self):
        effective = resolve_model_config(None, ModelCatalog(), AgentSettings())
        assert effective.model == "gemini-2.5-pro"
        assert effective.temperature == 0.7
        assert effective.top_p == 1.0

    def test_unknown_configured_model(self):
        settings = AgentSettings(model_defaults={"summary": "retired-model"})
        effective = resolve_model_config(None, ModelCatalog(), settings, ModelRole.SUMMARY)
        assert effective.model == "gemini-2.5-flash"

    @pytest.mark.asyncio
    async def test_session_override_keeps_zero(self, manager):
        session = await manager.create_agent_session("Tuned")
        session.model_config = SessionModelConfig(temperature=0, prompt_template="[[Prompt]]")
        effective = resolve_model_config(session, ModelCatalog(), AgentSettings())
        assert effective.model == "gemini-2.5-pro"
        assert effective.temperature == 0
        assert effective.top_p == 1.0
        assert effective.prompt_template == "[[Prompt]]"
