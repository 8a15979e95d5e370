# models.py
# Description: Model catalog with role defaults, and effective per-session model settings
#
# Imports
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .config import AgentSettings
from .Sessions.session_models import ChatSession, SessionModelConfig
#
#######################################################################################################################
#
# Classes:

class ModelRole(Enum):
    """What a model is used for."""
    CHAT = "chat"
    SUMMARY = "summary"
    COMPLETIONS = "completions"
    REWRITE = "rewrite"
    IMAGE = "image"


@dataclass(frozen=True)
class ModelInfo:
    """One entry of the model catalog."""
    value: str
    label: str
    default_for_roles: Tuple[ModelRole, ...] = ()
    supports_image_generation: bool = False


DEFAULT_MODELS: Tuple[ModelInfo, ...] = (
    ModelInfo("gemini-2.5-pro", "Gemini 2.5 Pro", (ModelRole.CHAT,)),
    ModelInfo("gemini-2.5-flash", "Gemini 2.5 Flash", (ModelRole.SUMMARY, ModelRole.REWRITE)),
    ModelInfo("gemini-2.5-flash-lite-preview-06-17", "Gemini 2.5 Flash Lite", (ModelRole.COMPLETIONS,)),
    ModelInfo(
        "gemini-2.5-flash-image-preview",
        "Gemini 2.5 Flash Image",
        (ModelRole.IMAGE,),
        supports_image_generation=True,
    ),
)


@dataclass
class ModelUpdateResult:
    """Outcome of re-checking configured models against the catalog."""
    model_defaults: Dict[str, str]
    settings_changed: bool = False
    changed_settings_info: List[str] = field(default_factory=list)


class ModelCatalog:
    """
    An immutable list of known models. Pass an instance to whatever needs
    role defaults instead of reading a shared global.
    """

    def __init__(self, models: Iterable[ModelInfo] = DEFAULT_MODELS):
        self._models: Tuple[ModelInfo, ...] = tuple(models)

    @property
    def models(self) -> Tuple[ModelInfo, ...]:
        return self._models

    def has_model(self, value: str) -> bool:
        return any(model.value == value for model in self._models)

    def get(self, value: str) -> Optional[ModelInfo]:
        for model in self._models:
            if model.value == value:
                return model
        return None

    def default_model_for_role(self, role: ModelRole) -> str:
        """
        The model flagged as default for ``role``, else the first model.

        Raises:
            ValueError: If the catalog is empty
        """
        for model in self._models:
            if role in model.default_for_roles:
                return model.value

        if self._models:
            logger.warning(
                f"No default model specified for role '{role.value}'. "
                f"Falling back to the first model in the catalog: {self._models[0].label}"
            )
            return self._models[0].value

        logger.error("Model catalog is empty; cannot determine a fallback model")
        raise ValueError("Model catalog is empty. Please configure available models.")

    def with_models(self, models: Iterable[ModelInfo]) -> "ModelCatalog":
        """A new catalog with a different model list (e.g. after discovery)."""
        return ModelCatalog(models)

    def get_updated_model_settings(self, model_defaults: Dict[str, str]) -> ModelUpdateResult:
        """
        Replace configured role models that are empty or no longer in the catalog.

        Only the chat, summary and completions roles are checked.
        """
        updated = dict(model_defaults)
        result = ModelUpdateResult(model_defaults=updated)
        for role in (ModelRole.CHAT, ModelRole.SUMMARY, ModelRole.COMPLETIONS):
            current = updated.get(role.value)
            if current and self.has_model(current):
                continue
            replacement = self.default_model_for_role(role)
            result.changed_settings_info.append(
                f"{role.value.capitalize()} model: '{current}' -> '{replacement}' (legacy model update)"
            )
            updated[role.value] = replacement
            result.settings_changed = True
        return result


def resolve_model_config(
    session: Optional[ChatSession],
    catalog: ModelCatalog,
    settings: AgentSettings,
    role: ModelRole = ModelRole.CHAT,
) -> SessionModelConfig:
    """
    Effective model settings for a request: the session override where set,
    otherwise the configured default for ``role``, otherwise the catalog default.
    """
    configured = settings.model_defaults.get(role.value)
    if not configured or not catalog.has_model(configured):
        configured = catalog.default_model_for_role(role)

    effective = SessionModelConfig(
        model=configured,
        temperature=settings.temperature,
        top_p=settings.top_p,
    )
    override = session.model_config if session is not None else None
    if override is None:
        return effective

    return replace(
        effective,
        model=override.model or effective.model,
        temperature=override.temperature if override.temperature is not None else effective.temperature,
        top_p=override.top_p if override.top_p is not None else effective.top_p,
        prompt_template=override.prompt_template,
    )

#
# End of models.py
#######################################################################################################################
