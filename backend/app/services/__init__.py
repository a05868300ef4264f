"""
Court rotation services.

engine_types, team_builder, constraints, match_proposer and phase_controller
are the pure engine: plain values in, plain values out, no database.
session_state, session_mutations and session_invariants run that engine
against the stored session.
"""
