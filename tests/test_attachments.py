"""
Tests for attachment path allocation.
"""

from infrapad.transfer.attachments import (
    add_attachment, allocate_path, attachment_file_name, sanitize_base_name,
)


def test_sanitize_replaces_runs_of_unsafe_characters():
    assert sanitize_base_name("web server (prod)") == "web_server_prod_"
    assert sanitize_base_name("db-01.example.com") == "db_01_example_com"
    assert sanitize_base_name("already_safe_123") == "already_safe_123"


def test_sanitize_falls_back_to_id():
    assert sanitize_base_name("", 42) == "42"


def test_allocate_path_first_free_candidate():
    assert allocate_path("base", []) == "base"
    assert allocate_path("base", ["base/key.pem"]) == "base-2"
    assert allocate_path("base", ["base/key.pem", "base-2/id_rsa"]) == "base-3"


def test_allocate_path_compares_whole_folder_names():
    # "base" is a string prefix of "baseline" but not the same folder
    assert allocate_path("base", ["baseline/key.pem"]) == "base"


def test_two_entities_with_same_description_get_distinct_folders():
    attachments = {}
    first = add_attachment(attachments, "base", 1, "id_rsa", b"one")
    second = add_attachment(attachments, "base", 2, "id_rsa", b"two")

    assert first == "base"
    assert second == "base-2"
    assert attachments == {"base/id_rsa": b"one", "base-2/id_rsa": b"two"}


def test_attachment_file_name_keeps_only_the_last_component():
    assert attachment_file_name("/home/me/.ssh/id_rsa") == "id_rsa"
    assert attachment_file_name("C:\\keys\\prod.ppk") == "prod.ppk"
    assert attachment_file_name("") == "attachment"
