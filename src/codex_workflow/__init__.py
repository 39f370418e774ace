"""codex-workflow: resumable multi-ticket orchestration for Codex sessions."""
