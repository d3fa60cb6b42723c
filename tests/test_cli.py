import json

import pytest
import yaml
from click.testing import CliRunner
from upyun_transfer.cli.app import build_cli

from .fakes import MiB, write_source


@pytest.fixture
def config_file(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        yaml.safe_dump(
            {
                "rest": {"bucket": "test-bucket", "operator": "uploader", "password": "hunter2"},
                "transfer": {"progress": False, "max_resume_put_tries": 1},
            }
        )
    )
    return config_file


@pytest.fixture
def invoke(tmp_path, config_file, storage, monkeypatch):
    """Run the CLI against the fake storage service."""
    monkeypatch.setattr("upyun_transfer.client.RestRequestExecutor", lambda options: storage)
    state_dir = tmp_path / "state"

    def _invoke(*args):
        runner = CliRunner()
        cli = build_cli()
        return runner.invoke(
            cli, ["--config-file", str(config_file), "--state-dir", str(state_dir), *args], catch_exceptions=False
        )

    return _invoke


class TestUpload:
    def test_small_file(self, tmp_path, invoke, storage):
        local_file = tmp_path / "notes.txt"
        local_file.write_text("remember the milk")

        result = invoke("upload", str(local_file), "/docs/notes.txt")

        assert result.exit_code == 0, result.output
        assert storage.objects["/docs/notes.txt"] == b"remember the milk"
        assert storage.requests[0][2]["Content-Type"] == "text/plain"
        assert "Upload finished!" in result.output

    def test_suspend_and_resume(self, tmp_path, invoke, storage):
        """
        GIVEN an upload whose part 3 fails
        WHEN the upload is started and then continued with --resume
        THEN the first run exits with an error naming the upload ID and the second run completes the object
        """
        local_file = tmp_path / "big.bin"
        data = write_source(local_file, 11 * MiB)
        storage.part_failures = {3: 1}

        result = invoke("upload", str(local_file), "/big.bin")

        assert result.exit_code == 1
        assert "upload-1" in result.output
        assert "/big.bin" not in storage.objects
        breakpoints = json.loads((tmp_path / "state" / "breakpoints.json").read_text())
        assert breakpoints["upload-1"]["next_part_id"] == 3

        storage.part_uploads.clear()
        result = invoke("upload", "--resume", "upload-1", str(local_file), "/big.bin")

        assert result.exit_code == 0, result.output
        assert storage.part_uploads == list(range(3, 11))
        assert storage.objects["/big.bin"] == data
        assert "upload-1" not in json.loads((tmp_path / "state" / "breakpoints.json").read_text())

    def test_resume_finished_upload(self, tmp_path, invoke, storage):
        local_file = tmp_path / "big.bin"
        write_source(local_file, 11 * MiB)
        storage.part_failures = {3: 1}
        assert invoke("upload", str(local_file), "/big.bin").exit_code == 1
        assert invoke("upload", "--resume", "upload-1", str(local_file), "/big.bin").exit_code == 0
        storage.part_uploads.clear()

        result = invoke("upload", "--resume", "upload-1", str(local_file), "/big.bin")

        assert result.exit_code == 1
        assert "already finished" in result.output
        assert storage.part_uploads == []

    def test_no_resumable(self, tmp_path, invoke, storage):
        local_file = tmp_path / "big.bin"
        write_source(local_file, 11 * MiB)

        result = invoke("upload", "--no-resumable", "--content-type", "video/mp4", str(local_file), "/big.bin")

        assert result.exit_code == 0, result.output
        assert storage.part_uploads == []
        assert storage.requests[0][2]["Content-Type"] == "video/mp4"


class TestList:
    def test_recursive(self, invoke, listing_tree):
        result = invoke("list", "/root")

        assert result.exit_code == 0, result.output
        lines = [line.split() for line in result.output.splitlines() if line.startswith(" ")]
        assert [name for _size, name in lines] == [
            "a.txt",
            "dir1/b.txt",
            "dir1/sub/c.txt",
            "dir1/sub/",
            "dir1/",
            "empty/",
            "z.txt",
        ]

    def test_json_first_level(self, invoke, listing_tree):
        result = invoke("list", "--max-level", "1", "--json", "/root")

        assert result.exit_code == 0, result.output
        entries = [json.loads(line) for line in result.output.splitlines() if line.startswith("{")]
        assert [(e["name"], e["is_dir"]) for e in entries] == [
            ("a.txt", False),
            ("dir1", True),
            ("empty", True),
            ("z.txt", False),
        ]

    def test_max_objects(self, invoke, listing_tree):
        result = invoke("list", "--max-objects", "2", "--json", "/root")

        entries = [json.loads(line) for line in result.output.splitlines() if line.startswith("{")]
        assert [e["name"] for e in entries] == ["a.txt", "dir1/b.txt"]

    def test_single_page(self, invoke, storage):
        for i in range(3):
            storage.add_file(f"/flat/f{i}", b"x")

        result = invoke("list", "--page", "--limit", "2", "--json", "/flat")

        entries = [json.loads(line) for line in result.output.splitlines() if line.startswith("{")]
        assert [e["name"] for e in entries] == ["f0", "f1"]
        assert "--iter 2" in result.output


class TestDownload:
    def test_file(self, tmp_path, invoke, storage):
        storage.add_file("/docs/notes.txt", b"remember the milk")

        result = invoke("download", "/docs/notes.txt", str(tmp_path / "notes.txt"))

        assert result.exit_code == 0, result.output
        assert (tmp_path / "notes.txt").read_bytes() == b"remember the milk"

    def test_recursive(self, tmp_path, invoke, listing_tree):
        result = invoke("download", "-r", "/root", str(tmp_path / "out"))

        assert result.exit_code == 0, result.output
        assert (tmp_path / "out" / "dir1" / "b.txt").read_bytes() == b"bb"
        assert (tmp_path / "out" / "empty").is_dir()


def test_mkdir_and_delete(invoke, storage):
    assert invoke("mkdir", "/new").exit_code == 0
    assert invoke("delete", "--folder", "--async", "/new").exit_code == 0

    assert [(method, uri) for method, uri, _headers, _query in storage.requests] == [
        ("POST", "/new"),
        ("DELETE", "/new"),
    ]
    assert storage.requests[1][2] == {"x-upyun-async": "true", "x-upyun-folder": "true"}


def test_dump_config(config_file):
    """
    GIVEN a config file with an operator password
    WHEN the dump-config command is called
    THEN the merged configuration is logged with the password masked
    """
    runner = CliRunner()
    cli = build_cli()
    result = runner.invoke(cli, ["--config-file", str(config_file), "dump-config"])

    assert result.exit_code == 0
    assert str(config_file.resolve()) in result.output
    assert '"bucket": "test-bucket"' in result.output
    assert '"password": "***"' in result.output
    assert "hunter2" not in result.output
