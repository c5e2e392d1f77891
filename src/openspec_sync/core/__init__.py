"""Core logic for openspec-sync: config, archive transport, Jira store, sync engine."""
