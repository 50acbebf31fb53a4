"""
services package — Credential, identity, policy, assignment, gate, capability
and audit services. Routers call into these; these never import FastAPI.
"""
