"""Tests for the error taxonomy."""
from netreconcile.exceptions import (
    BestEffort,
    CommandError,
    CommitError,
    NetReconcileError,
    PostCommitConsistencyError,
)


class TestBestEffort:
    """Tests for cleanup outcomes."""

    def test_ok(self):
        assert BestEffort(operation="unlock").ok
        assert str(BestEffort(operation="unlock")) == "unlock: ok"

    def test_merge_keeps_all_errors(self):
        merged = BestEffort("clear", ["a"]).merge(BestEffort("unlock", ["b"]))
        assert merged.errors == ["a", "b"]
        assert merged.operation == "clear + unlock"
        assert str(merged) == "clear + unlock: failed (a; b)"


class TestErrorChain:
    """str(error) reads as the full causal chain."""

    def test_hierarchy(self):
        assert issubclass(CommitError, NetReconcileError)
        assert issubclass(PostCommitConsistencyError, NetReconcileError)

    def test_command_in_message(self):
        err = CommandError("syntax error", command="show foo", entity="vlan users")
        assert str(err) == "[vlan users] syntax error (command: 'show foo')"

    def test_cleanup_appended_not_substituted(self):
        err = CommitError("commit failed", entity="vlan users", warnings=["w1"])
        err.attach_cleanup(BestEffort("rollback", ["config unlock: gone"]))
        text = str(err)
        assert text.startswith("[vlan users] commit failed")
        assert "warnings: w1" in text
        assert "cleanup rollback: failed (config unlock: gone)" in text

    def test_attach_cleanup_merges(self):
        err = NetReconcileError("x")
        err.attach_cleanup(BestEffort("rollback", ["a"]))
        err.attach_cleanup(BestEffort("close session", ["b"]))
        assert err.cleanup.errors == ["a", "b"]
