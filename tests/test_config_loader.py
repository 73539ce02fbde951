"""Tests for loading post-processor definitions from files."""

import json

import pytest

from shell_postprocessor.config_loader import load_config_file


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestJson:
    def test_template_document(self, tmp_path):
        doc = {
            "description": "web image",
            "variables": {"region": "eu", "count": 2},
            "builders": [{"type": "qemu"}],
            "post-processors": [
                {"type": "shell", "inline": ["echo hi"]},
                ["compress", {"type": "shell", "script": "upload.sh"}],
            ],
        }
        loaded = load_config_file(_write(tmp_path, "web.json", json.dumps(doc)))

        assert loaded.description == "web image"
        assert loaded.variables == {"region": "eu", "count": "2"}
        assert loaded.chains == [
            [{"type": "shell", "inline": ["echo hi"]}],
            [{"type": "compress"}, {"type": "shell", "script": "upload.sh"}],
        ]

    def test_single_definition(self, tmp_path):
        loaded = load_config_file(_write(tmp_path, "one.json", '{"type": "shell", "inline": ["true"]}'))
        assert loaded.chains == [[{"type": "shell", "inline": ["true"]}]]

    def test_invalid_json_position(self, tmp_path):
        with pytest.raises(ValueError, match="line 1, column"):
            load_config_file(_write(tmp_path, "bad.json", "{"))

    def test_unknown_top_level_key(self, tmp_path):
        text = json.dumps({"post-processors": ["shell"], "surprise": 1})
        with pytest.raises(ValueError, match="Unsupported top-level keys: surprise"):
            load_config_file(_write(tmp_path, "x.json", text))

    def test_definition_without_type(self, tmp_path):
        text = json.dumps({"post-processors": [{"inline": ["true"]}]})
        with pytest.raises(ValueError, match="post-processor 1 requires 'type'"):
            load_config_file(_write(tmp_path, "x.json", text))

    def test_empty_sequence(self, tmp_path):
        text = json.dumps({"post-processors": [[]]})
        with pytest.raises(ValueError, match="must not be an empty sequence"):
            load_config_file(_write(tmp_path, "x.json", text))


class TestYaml:
    def test_list(self, tmp_path):
        text = "- type: shell\n  inline:\n    - echo one\n- shell\n"
        loaded = load_config_file(_write(tmp_path, "pp.yaml", text))
        assert loaded.chains == [[{"type": "shell", "inline": ["echo one"]}], [{"type": "shell"}]]

    def test_invalid_yaml_position(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid YAML .* at line"):
            load_config_file(_write(tmp_path, "bad.yml", "a: [1, 2\n"))


class TestToml:
    def test_array_of_tables(self, tmp_path):
        text = (
            'description = "toml"\n'
            "\n"
            "[[post-processor]]\n"
            'type = "shell"\n'
            'inline = ["echo one"]\n'
            "\n"
            "[[post-processor]]\n"
            'type = "shell"\n'
            'scripts = ["a.sh"]\n'
            "keep_input_artifact = true\n"
        )
        loaded = load_config_file(_write(tmp_path, "pp.toml", text))
        assert loaded.description == "toml"
        assert loaded.chains == [
            [{"type": "shell", "inline": ["echo one"]}],
            [{"type": "shell", "scripts": ["a.sh"], "keep_input_artifact": True}],
        ]

    def test_invalid_toml(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid TOML"):
            load_config_file(_write(tmp_path, "bad.toml", "[[post-processor]\n"))


def test_unsupported_suffix(tmp_path):
    with pytest.raises(ValueError, match="Unsupported config format"):
        load_config_file(_write(tmp_path, "pp.ini", "[x]"))
