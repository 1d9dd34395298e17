import json
import logging

import pytest

from apisurface.config import (
    AxiosOutput,
    OpenApiOutput,
    SplitDest,
    expand_patterns,
    load_config,
)
from apisurface.errors import ConfigError


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


AXIOS_TASK = {
    "input": {"reader": "manifest", "sources": "src/*.controller.yaml"},
    "output": {"writer": "axios", "dest": "client/api.ts"},
}


class TestLoadConfig:
    def test_single_task(self, tmp_path):
        tasks = load_config(_write(tmp_path / "apisurface.json", AXIOS_TASK))
        assert len(tasks) == 1
        task = tasks[0]
        assert task.root == tmp_path
        assert task.input.sources == ["src/*.controller.yaml"]
        assert task.input.types is None
        assert isinstance(task.output, AxiosOutput)
        assert task.output.format_settings.indent_size == 2
        assert task.output.format_settings.semicolons == "ignore"

    def test_camel_case_keys(self, tmp_path):
        data = {
            "input": {"sources": ["a.yaml"], "types": "b.yaml"},
            "output": {
                "writer": "axios",
                "dest": {"requestFile": "api/requests.ts", "typesFile": "api/types.ts"},
                "httpModule": "src/http.ts",
                "formatSettings": {"indentSize": 4, "semicolons": "remove"},
            },
        }
        output = load_config(_write(tmp_path / "c.json", data))[0].output
        assert output.dest == SplitDest(request_file="api/requests.ts", types_file="api/types.ts")
        assert output.http_module == "src/http.ts"
        assert output.format_settings.indent_size == 4

    def test_snake_case_keys(self, tmp_path):
        data = {
            "input": {"sources": "a.yaml"},
            "output": {"writer": "axios", "dest": "api.ts", "http_module": "http.ts"},
        }
        assert load_config(_write(tmp_path / "c.json", data))[0].output.http_module == "http.ts"

    def test_yaml_task_list(self, tmp_path):
        f = tmp_path / "apisurface.yaml"
        f.write_text(
            "- input: {sources: a.yaml}\n"
            "  output: {writer: axios, dest: api.ts}\n"
            "- input: {reader: python, sources: 'src/**/*.py'}\n"
            "  output:\n"
            "    writer: openapi\n"
            "    dest: openapi.json\n"
            "    info: {title: Shop, version: '2.0'}\n"
        )
        tasks = load_config(f)
        assert [t.output.writer for t in tasks] == ["axios", "openapi"]
        assert isinstance(tasks[1].output, OpenApiOutput)
        assert tasks[1].output.info.version == "2.0"
        assert tasks[1].input.reader == "python"

    def test_default_lookup(self, tmp_path, monkeypatch):
        _write(tmp_path / "apisurface.json", AXIOS_TASK)
        monkeypatch.chdir(tmp_path)
        assert len(load_config()) == 1

    def test_no_default_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError, match="No configuration file found"):
            load_config()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.json")

    def test_unparsable(self, tmp_path):
        f = tmp_path / "c.json"
        f.write_text("{not json")
        with pytest.raises(ConfigError, match="Cannot parse"):
            load_config(f)

    def test_not_utf8(self, tmp_path):
        f = tmp_path / "c.yaml"
        f.write_bytes(b"output: {writer: axios, dest: caf\xe9.ts}\n")
        with pytest.raises(ConfigError, match="not UTF-8"):
            load_config(f)

    @pytest.mark.parametrize("patch", [
        {"input": {"reader": "java", "sources": "a"}},
        {"output": {"writer": "fetch", "dest": "api.ts"}},
        {"output": {"writer": "openapi", "dest": "o.json"}},
    ])
    def test_invalid_task(self, tmp_path, patch):
        with pytest.raises(ConfigError, match="Invalid task #0"):
            load_config(_write(tmp_path / "c.json", {**AXIOS_TASK, **patch}))

    def test_empty_list(self, tmp_path):
        with pytest.raises(ConfigError, match="no tasks"):
            load_config(_write(tmp_path / "c.json", []))


class TestExpandPatterns:
    def test_relative_to_root(self, tmp_path):
        (tmp_path / "src" / "users").mkdir(parents=True)
        (tmp_path / "src" / "users" / "users.controller.yaml").write_text("{}")
        (tmp_path / "src" / "items.controller.yaml").write_text("{}")
        found = expand_patterns(["src/**/*.controller.yaml"], tmp_path)
        assert sorted(p.name for p in found) == ["items.controller.yaml", "users.controller.yaml"]

    def test_deduplicates(self, tmp_path):
        (tmp_path / "a.yaml").write_text("{}")
        assert expand_patterns(["a.yaml", "*.yaml"], tmp_path) == [tmp_path / "a.yaml"]

    def test_no_match_warns(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            assert expand_patterns(["missing/*.py"], tmp_path) == []
        assert "matched no files" in caplog.text
