import io
import re
from typing import Dict, List, Optional

import pydantic
import yaml
from croniter import croniter

from prbuilder import config as app_config


class ConfigurationError(ValueError):
    pass


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid", populate_by_name=True)


REPOSITORY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


def _validate_cron(value: str) -> str:
    if not croniter.is_valid(value):
        raise ValueError(f"Invalid cron expression: {value!r}")
    return value


class TriggerConfig(Model):
    """Settings shared by every coordinator of one project.

    Instances are frozen. Reconfiguring a project builds a new value and a new
    coordinator rather than mutating this one.
    """

    model_config = pydantic.ConfigDict(
        extra="forbid", populate_by_name=True, frozen=True
    )

    bot_login: Optional[str] = pydantic.Field(None, alias="bot-login")
    ok_to_test_phrase: str = pydantic.Field(
        r".*ok\W+to\W+test.*", alias="ok-to-test-phrase"
    )
    use_comments: bool = pydantic.Field(False, alias="use-comments")
    cron: str = "*/5 * * * *"
    status_context: str = pydantic.Field("prbuilder", alias="status-context")
    hook_url: Optional[str] = pydantic.Field(None, alias="hook-url")
    github_server: str = pydantic.Field("https://github.com", alias="github-server")

    @pydantic.field_validator("ok_to_test_phrase")
    @classmethod
    def _validate_phrase(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"Invalid ok to test phrase {value!r}: {e}")
        return value

    @pydantic.field_validator("cron")
    @classmethod
    def _validate_cron(cls, value: str) -> str:
        return _validate_cron(value)

    def phrase_pattern(self) -> "re.Pattern[str]":
        return re.compile(self.ok_to_test_phrase)

    @classmethod
    def from_env(cls) -> "TriggerConfig":
        return cls(
            bot_login=app_config.BOT_LOGIN,
            ok_to_test_phrase=app_config.OK_TO_TEST_PHRASE,
            use_comments=app_config.USE_COMMENTS,
            cron=app_config.POLL_CRON,
            status_context=app_config.STATUS_CONTEXT,
            hook_url=app_config.HOOK_URL,
            github_server=app_config.GITHUB_SERVER,
        )


class Project(Model):
    name: str
    repository: str
    cron: Optional[str] = None
    command: List[str] = pydantic.Field(default_factory=list)
    parameters: Dict[str, str] = pydantic.Field(default_factory=dict)

    @pydantic.field_validator("repository")
    @classmethod
    def _validate_repository(cls, value: str) -> str:
        if not REPOSITORY_PATTERN.match(value):
            raise ValueError(f"Repository must look like 'owner/name', got {value!r}")
        return value

    @pydantic.field_validator("cron")
    @classmethod
    def _validate_cron(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _validate_cron(value)

    def trigger_config(self, base: TriggerConfig) -> TriggerConfig:
        if self.cron is None:
            return base
        return base.model_copy(update={"cron": self.cron})


class ProjectsFile(Model):
    projects: List[Project] = pydantic.Field(default_factory=list)

    @pydantic.model_validator(mode="after")
    def _unique_names(self) -> "ProjectsFile":
        seen = set()
        for project in self.projects:
            if project.name in seen:
                raise ValueError(f"Duplicate project name {project.name!r}")
            seen.add(project.name)
        return self

    @classmethod
    def parse_yaml(cls, content: str) -> "ProjectsFile":
        data = yaml.safe_load(io.StringIO(content))
        return cls() if data is None else cls.model_validate(data)

    @classmethod
    def load(cls, path: str) -> "ProjectsFile":
        with open(path) as fh:
            return cls.parse_yaml(fh.read())

    def get(self, name: str) -> Project:
        for project in self.projects:
            if project.name == name:
                return project
        raise KeyError(name)
