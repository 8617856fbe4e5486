from fluxtag.core.runtime import RuntimeSettings, RuntimeSettingsPatch
from fluxtag.core.settings import Settings
from fluxtag.vlm.prompts import FLUX_PROMPT, QWEN_PROMPT


def test_seeded_from_settings(monkeypatch):
    monkeypatch.setenv("API_KEY", "fallback-key")
    s = Settings(_env_file=None, gemini_api_key=None, prefix="tok, ", tagging_mode="flux", custom_prompt=None)
    rt = RuntimeSettings.from_settings(s)
    assert rt.gemini_api_key == "fallback-key"
    assert rt.prefix == "tok, "
    assert rt.prompt == FLUX_PROMPT


def test_mode_switch_loads_prompt_unless_given():
    rt = RuntimeSettings()
    switched = rt.apply(RuntimeSettingsPatch(tagging_mode="qwen"))
    assert switched.prompt == QWEN_PROMPT
    custom = rt.apply(RuntimeSettingsPatch(tagging_mode="qwen", prompt="my prompt"))
    assert custom.prompt == "my prompt"
    assert rt.tagging_mode == "flux"


def test_public_hides_keys():
    rt = RuntimeSettings(provider="openai", openai_api_key="sk-secret")
    data = rt.public()
    assert "openai_api_key" not in data
    assert data["openai_api_key_set"] is True
    assert data["gemini_api_key_set"] is False
    assert rt.active_credential() == "sk-secret"
