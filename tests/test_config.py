import pytest

from toolpilot.config import (
    AgentConfig,
    AzureOpenAIChatConfig,
    DeepSeekChatConfig,
    OpenAIChatConfig,
    ToolPilotConfig,
    load_config,
    validate_chat_config,
)
from toolpilot.exceptions import ConfigError, NoChatLLMConfigError
from toolpilot.llm.factory import build_chat_llm, build_gateway
from toolpilot.llm.oai import OpenAIChatLLM

CONFIG_YAML = """
default_model: gpt-4o
chat_llms:
  gpt-4o:
    type: openai
    model: gpt-4o
    api_key: ${TOOLPILOT_TEST_KEY}
  glm:
    type: deepseek
    model: glm-4-flash
    endpoint: https://open.example.com/v1
    api_key: glm-key
  azure:
    type: azure_openai
    model: gpt-4o-mini
    endpoint: https://example.openai.azure.com
    deployment: mini
    api_version: "2024-06-01"
    api_key: azure-key
agent:
  batch_size: 3
  serialize_approvals: true
  tool_aliases:
    lsDir: list_directory
tools:
  list_directory:
    cls: my_tools.ListDirectory
    kwargs:
      root: /tmp
trace_dir: traces
"""


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.setenv("TOOLPILOT_TEST_KEY", "sk-from-env")
    path = tmp_path / "config.yml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


def test_load_config(config_path):
    config = load_config(str(config_path))

    assert config.default_model == "gpt-4o"
    assert isinstance(config.chat_llms["gpt-4o"], OpenAIChatConfig)
    assert config.chat_llms["gpt-4o"].api_key == "sk-from-env"
    assert isinstance(config.chat_llms["glm"], DeepSeekChatConfig)
    assert isinstance(config.chat_llms["azure"], AzureOpenAIChatConfig)
    assert config.agent.batch_size == 3
    assert config.agent.serialize_approvals
    assert config.agent.summary_model_threshold == 3
    assert config.agent.tool_aliases == {"lsDir": "list_directory"}
    assert config.tools["list_directory"].kwargs == {"root": "/tmp"}
    assert config.trace_dir == "traces"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "missing.yml"))


def test_invalid_config(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("agent:\n  batch_size: 0\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_agent_defaults():
    config = AgentConfig()
    assert config.batch_size == 5
    assert not config.enforce_approval_tools
    assert not config.serialize_approvals
    assert "delete_file" in config.approval_tools
    assert config.needs_repair("GLM-4-flash")
    assert config.needs_repair("hf-mistral")
    assert not config.needs_repair("gpt-4o")


def test_resolve_model():
    assert ToolPilotConfig(default_model="a").resolve_model("b") == "b"
    assert ToolPilotConfig(default_model="a").resolve_model() == "a"
    single = ToolPilotConfig.model_validate({"chat_llms": {"only": {"type": "openai", "model": "m", "api_key": "k"}}})
    assert single.resolve_model() == "only"
    with pytest.raises(ConfigError):
        ToolPilotConfig().resolve_model()


def test_chat_params_drop_none():
    config = OpenAIChatConfig(type="openai", model="m", api_key="k", temperature=None)
    assert config.chat_params() == {"max_tokens": 4096, "top_p": 1.0}


def test_build_gateway(config_path):
    gateway = build_gateway(load_config(str(config_path)))
    assert set(gateway.models) == {"gpt-4o", "glm", "azure"}
    assert isinstance(gateway.resolve("glm-4-flash"), OpenAIChatLLM)
    assert gateway.default is gateway.models["gpt-4o"]
    assert gateway.models["glm"].model == "glm-4-flash"


def test_build_gateway_without_models():
    with pytest.raises(NoChatLLMConfigError):
        build_gateway(ToolPilotConfig())


def test_extra_params_pass_through():
    config = validate_chat_config({
        "type": "openai",
        "model": "qwen2.5-7b-instruct",
        "endpoint": "http://localhost:8080/v1",
        "api_key": "none",
        "extra_params": {"stop": ["</s>"]},
    })
    assert isinstance(config, OpenAIChatConfig)
    assert config.chat_params()["stop"] == ["</s>"]
    assert isinstance(build_chat_llm(config), OpenAIChatLLM)
