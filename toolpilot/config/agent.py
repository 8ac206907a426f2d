from pydantic import BaseModel, Field
from typing_extensions import Annotated


DEFAULT_APPROVAL_TOOLS = [
    'write_file', 'create_file', 'delete_file', 'run_command', 'append_file',
    'update_package_json', 'init_project', 'git_init', 'git_commit',
    'git_set_remote', 'git_clone', 'git_pull', 'git_push',
]

DEFAULT_READONLY_TOOLS = ['read_file', 'list_directory', 'search_files']


class AgentConfig(BaseModel):
    batch_size: Annotated[int, Field(
        description="Number of steps executed concurrently in one batch",
        default=5,
        ge=1,
    )]
    summary_model_threshold: Annotated[int, Field(
        description="Completed step count from which the summary is written by the model",
        default=3,
        ge=1,
    )]
    repair_models: Annotated[list[str], Field(
        description="Model id prefixes whose plan JSON goes through the repair pipeline",
        default_factory=lambda: ['glm', 'local', 'hf-'],
    )]
    tool_aliases: Annotated[dict[str, str], Field(
        description="Known-wrong tool names mapped to their canonical names",
        default_factory=lambda: {
            'listDirectory': 'list_directory',
            'list_dir': 'list_directory',
            'readFile': 'read_file',
            'writeFile': 'write_file',
            'createFile': 'create_file',
            'deleteFile': 'delete_file',
            'searchFiles': 'search_files',
            'runCommand': 'run_command',
        },
    )]
    approval_tools: Annotated[list[str], Field(
        description="Tool names that always require user approval",
        default_factory=lambda: list(DEFAULT_APPROVAL_TOOLS),
    )]
    readonly_tools: Annotated[list[str], Field(
        description="Tool names that never require approval, listed in the planning prompt",
        default_factory=lambda: list(DEFAULT_READONLY_TOOLS),
    )]
    enforce_approval_tools: Annotated[bool, Field(
        description="Require approval for approval_tools even if the model did not ask for it",
        default=False,
    )]
    serialize_approvals: Annotated[bool, Field(
        description="Allow only one outstanding approval prompt at a time",
        default=False,
    )]
    history_limit: Annotated[int, Field(
        description="Maximum number of history messages forwarded to the planner",
        default=20,
        ge=0,
    )]
    skill_limit: Annotated[int, Field(
        description="Maximum number of guides from the skill source added to the planning prompt",
        default=3,
        ge=0,
    )]

    def needs_repair(self, model_id: str) -> bool:
        lowered = model_id.lower()
        return any(lowered.startswith(prefix.lower()) for prefix in self.repair_models)
