"""
Operations layer

Composes the document store, the engine services and the audit trail into
the workflows the admin cogs call.

Architecture:
- Database layer: documents table, configuration and audit tables
- Services layer: scoring, ranks, attendance, finalization (pure or store-only)
- Operations layer: load snapshots, validate input, run services, audit
- Command layer: Discord slash commands and confirmation UI

Modules:
- EventOperations: check-in/out, payments, live stats, event settings, finalization
- AdminOperations: experience awards, badges, rank structure, ledger corrections
"""
