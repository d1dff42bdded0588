"""Tests for the security/PII gate script."""

import importlib.util
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent


def _load_gate():
    spec = importlib.util.spec_from_file_location(
        "gate_security_pii", ROOT / "scripts" / "gate_security_pii.py"
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestSecurityGate:
    def test_source_tree_passes(self):
        gate = _load_gate()
        assert gate.check_tree(ROOT / "src") == []

    def test_flags_print(self, tmp_path):
        gate = _load_gate()
        sample = tmp_path / "bad.py"
        sample.write_text('print("hello")\n')
        [error] = gate.check_file(sample)
        assert "print()" in error

    def test_flags_unredacted_token(self, tmp_path):
        gate = _load_gate()
        sample = tmp_path / "bad.py"
        sample.write_text('logger.info(f"sending to {push_token}")\n')
        errors = gate.check_file(sample)
        assert any("push_token" in e for e in errors)

    def test_redacted_call_passes(self, tmp_path):
        gate = _load_gate()
        sample = tmp_path / "ok.py"
        sample.write_text(
            'logger.info("sent", extra={"extra_fields": safe_log_context(token=hash_identifier(push_token))})\n'
        )
        assert gate.check_file(sample) == []
