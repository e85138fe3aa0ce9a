import pydantic
import pytest

from prbuilder.model import ProjectsFile, TriggerConfig

PROJECTS = """
projects:
  - name: backend
    repository: org/backend
    command: ["make", "test"]
    parameters:
      suite: full
  - name: frontend
    repository: org/frontend
    cron: "*/15 * * * *"
"""


def test_default_trigger_config():
    config = TriggerConfig()

    assert config.cron == "*/5 * * * *"
    assert not config.use_comments
    assert config.phrase_pattern().fullmatch("ok to test")
    assert config.phrase_pattern().fullmatch("please, ok, to test")
    assert not config.phrase_pattern().fullmatch("ok to test\nbut check docs too")
    assert not config.phrase_pattern().fullmatch("okay")


def test_trigger_config_aliases():
    config = TriggerConfig.model_validate(
        {"bot-login": "prbuilder-bot", "use-comments": True, "cron": "0 * * * *"}
    )

    assert config.bot_login == "prbuilder-bot"
    assert config.cron == "0 * * * *"
    assert config.use_comments


@pytest.mark.parametrize(
    "data",
    [
        {"ok_to_test_phrase": "(unclosed"},
        {"cron": "every five minutes"},
        {"unknown": 1},
    ],
)
def test_invalid_trigger_config(data):
    with pytest.raises(pydantic.ValidationError):
        TriggerConfig.model_validate(data)


def test_trigger_config_is_frozen():
    config = TriggerConfig()
    with pytest.raises(pydantic.ValidationError):
        config.cron = "0 * * * *"


def test_parse_projects():
    projects = ProjectsFile.parse_yaml(PROJECTS)

    backend = projects.get("backend")
    assert backend.repository == "org/backend"
    assert backend.command == ["make", "test"]
    assert backend.parameters == {"suite": "full"}

    base = TriggerConfig()
    assert backend.trigger_config(base) is base
    assert projects.get("frontend").trigger_config(base).cron == "*/15 * * * *"

    with pytest.raises(KeyError):
        projects.get("missing")


def test_empty_projects_file():
    assert ProjectsFile.parse_yaml("").projects == []


def test_projects_file_from_disk(tmp_path):
    path = tmp_path / "projects.yml"
    path.write_text(PROJECTS)

    assert [p.name for p in ProjectsFile.load(str(path)).projects] == [
        "backend",
        "frontend",
    ]


@pytest.mark.parametrize(
    "content",
    [
        "projects:\n  - name: a\n    repository: not-a-repo\n",
        "projects:\n  - name: a\n    repository: org/a\n    cron: nope\n",
        (
            "projects:\n  - name: a\n    repository: org/a\n"
            "  - name: a\n    repository: org/b\n"
        ),
    ],
)
def test_invalid_projects(content):
    with pytest.raises(pydantic.ValidationError):
        ProjectsFile.parse_yaml(content)
