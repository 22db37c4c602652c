"""Integration tests for the CLI: new -> insert -> show -> publish -> list -> open"""

import re

import pytest
from typer.testing import CliRunner

from blockpub.cli.cli import app


STRANGER = "0x00000000000000000000000000000000000000b2"

runner = CliRunner()


@pytest.fixture(autouse=True)
def project_dir(tmp_path, monkeypatch):
    """Run each test from a clean tmp directory with its own database."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BLOCKPUB_DB_URL", f"sqlite:///{tmp_path}/test.db")
    monkeypatch.setenv("BLOCKPUB_POLL_INTERVAL", "0.01")
    return tmp_path


def _invoke(*args):
    return runner.invoke(app, list(args))


def _build_document():
    assert _invoke("new").exit_code == 0
    result = _invoke("insert", "root", "heading", "-p", "text=Hello!", "-p", "level=1", "--id", "heading-1")
    assert result.exit_code == 0, result.output
    result = _invoke("insert", "root", "PRIMITIVE_LINK", "-p", "text=Let's go!", "-p", "href=https://crcls.xyz")
    assert result.exit_code == 0, result.output


def _metadata_uri(output: str) -> str:
    return re.search(r"Metadata: (ipfs://\S+)", output).group(1)


def test_new_creates_empty_document(project_dir):
    result = _invoke("new")
    assert result.exit_code == 0, result.output
    assert (project_dir / "block.json").exists()


def test_new_refuses_to_overwrite():
    _invoke("new")
    result = _invoke("new")
    assert result.exit_code == 1
    assert "already exists" in result.output
    assert _invoke("new", "--force").exit_code == 0


def test_insert_and_show():
    _build_document()
    result = _invoke("show")
    assert result.exit_code == 0, result.output
    assert "container [root]" in result.output
    assert "  heading [heading-1] level=1 text='Hello!'" in result.output
    assert "href='https://crcls.xyz'" in result.output


def test_show_json_is_canonical():
    _build_document()
    result = _invoke("show", "--json")
    assert result.output.startswith('{"children":[{"children":[],"connections":[],"id":"heading-1"')


def test_insert_into_missing_target_fails():
    _invoke("new")
    result = _invoke("insert", "nope", "paragraph", "-p", "text=x")
    assert result.exit_code == 1
    assert "Node 'nope' not found" in result.output


def test_insert_rejects_bad_prop_syntax():
    _invoke("new")
    result = _invoke("insert", "root", "paragraph", "-p", "text")
    assert result.exit_code == 1
    assert "expected key=value" in result.output


def test_insert_with_connection():
    _invoke("new")
    _invoke("insert", "root", "form", "-p", "name=signup", "--id", "form-1")
    result = _invoke("insert", "form-1", "MoonmailConnector", "--connect", "integration:moonmail")
    assert result.exit_code == 0, result.output
    assert "-> integration:moonmail" in _invoke("show").output


def test_insert_with_dangling_node_connection_fails():
    _invoke("new")
    result = _invoke("insert", "root", "button", "--connect", "node:ghost")
    assert result.exit_code == 1
    assert "ghost" in result.output


def test_publish_list_and_open():
    _build_document()
    result = _invoke("publish", "--name", "Hello", "--description", "First", "--tags", "a,b")
    assert result.exit_code == 0, result.output
    assert "Encrypting block..." in result.output
    assert "Transaction Confirmed: 0x" in result.output
    uri = _metadata_uri(result.output)

    listing = _invoke("list")
    assert listing.exit_code == 0
    assert "Hello" in listing.output and uri in listing.output

    opened = _invoke("open", uri)
    assert opened.exit_code == 0, opened.output
    assert "Hello: First" in opened.output
    assert "heading [heading-1]" in opened.output


def test_open_as_stranger_is_denied():
    _build_document()
    uri = _metadata_uri(_invoke("publish", "--name", "Hello").output)
    result = _invoke("open", uri, "--account", STRANGER)
    assert result.exit_code == 1
    assert "Access denied" in result.output


def test_publish_without_document_fails():
    result = _invoke("publish", "--name", "Hello")
    assert result.exit_code == 1
    assert "No document" in result.output


def test_publish_rejects_empty_name():
    _build_document()
    result = _invoke("publish", "--name", "")
    assert result.exit_code == 1
    assert "Invalid metadata" in result.output


def test_publish_with_non_image_fails_at_image_stage(project_dir):
    _build_document()
    (project_dir / "notes.txt").write_text("not an image")
    result = _invoke("publish", "--name", "Hello", "--image", "notes.txt")
    assert result.exit_code == 1
    assert "stage 'store_image'" in result.output
    assert "Uploaded file is not an image" in result.output


def test_publish_with_image(project_dir):
    _build_document()
    (project_dir / "cover.png").write_bytes(b"\x89PNG fake")
    result = _invoke("publish", "--name", "Hello", "--image", "cover.png")
    assert result.exit_code == 0, result.output
    assert "Uploading cover image..." in result.output


def test_publish_without_wallet_is_rejected():
    _build_document()
    result = _invoke("publish", "--name", "Hello", "--account", "")
    assert result.exit_code == 1
    assert "Please connect your wallet." in result.output


def test_list_empty_exits_1():
    result = _invoke("list")
    assert result.exit_code == 1
    assert "No published blocks found." in result.output


def test_init_reset(project_dir):
    assert _invoke("init").exit_code == 0
    result = _invoke("init", "--reset")
    assert result.exit_code == 0
    assert "Existing data cleared." in result.output
    assert (project_dir / "test.db").exists()
